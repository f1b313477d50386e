from .ipfs_connector import IpfsHttpConnector

__all__ = ["IpfsHttpConnector"]
