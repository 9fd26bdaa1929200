"""arkstack — installs and updates a dedicated game-server stack."""

__version__ = "0.1.0"
