DEPLOYMENT_CREATED_TOPIC = "deployment.created"
WALLET_ADDED_TOPIC = "wallet.added"
WALLET_REMOVED_TOPIC = "wallet.removed"

# bump whenever NetworkChain gains or loses a member
NETWORK_SET_VERSION = 1

NETWORK_SOCKET_URLS = {
    "eth_mainnet": "wss://eth-mainnet.g.alchemy.com/v2/{key}",
    "sepolia": "wss://eth-sepolia.g.alchemy.com/v2/{key}",
    "polygon": "wss://polygon-mainnet.g.alchemy.com/v2/{key}",
    "arbitrum": "wss://arb-mainnet.g.alchemy.com/v2/{key}",
}

NETWORK_RPC_URLS = {
    "eth_mainnet": "https://eth-mainnet.g.alchemy.com/v2/{key}",
    "sepolia": "https://eth-sepolia.g.alchemy.com/v2/{key}",
    "polygon": "https://polygon-mainnet.g.alchemy.com/v2/{key}",
    "arbitrum": "https://arb-mainnet.g.alchemy.com/v2/{key}",
}

BACKFILL_PROGRESS_EVERY = 100
