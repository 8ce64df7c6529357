from core import constants
from core.exceptions import ConfigurationError
from models.deployments import NetworkChain


def parse_network(name: str) -> NetworkChain:
    try:
        return NetworkChain[name.strip().lower()]
    except KeyError:
        raise ConfigurationError(f"Unsupported network: {name}") from None


def get_provider_url(
    network: NetworkChain | str, alchemy_key: str | None, *, websocket: bool = True
) -> str:
    """Resolve the upstream endpoint for ``network``.

    The websocket template feeds the live monitor, the https template feeds
    the backfill job. Raises ConfigurationError when the credential is not
    set or the network is not part of NetworkChain.
    """
    if not alchemy_key:
        raise ConfigurationError("ALCHEMY_KEY not provided")

    if not isinstance(network, NetworkChain):
        network = parse_network(network)

    templates = (
        constants.NETWORK_SOCKET_URLS if websocket else constants.NETWORK_RPC_URLS
    )
    template = templates.get(network.value)
    if template is None:
        raise ConfigurationError(f"No endpoint configured for network: {network.value}")
    return template.format(key=alchemy_key)
