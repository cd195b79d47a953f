"""Story publishing backend with outbox-driven NFT minting."""

__version__ = "0.1.0"
