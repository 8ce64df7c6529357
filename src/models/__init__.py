from sqlmodel import SQLModel
from .wallets import Wallet
from .deployments import Deployment, NetworkChain
