class ContractWatchError(Exception):
    """Base class for errors raised by the ingestion core."""


class ConfigurationError(ContractWatchError):
    """A unit cannot start: missing credential, unknown network, bad range."""


class WalletNotFoundError(ConfigurationError):
    def __init__(self, address: str):
        super().__init__(f"Wallet {address} not found in database")
        self.address = address


class StorageUnavailableError(ContractWatchError):
    """The database cannot be reached. Fatal to the whole process."""
