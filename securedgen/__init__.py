"""securedgen: secured companion classes whose confidential fields are encrypted at rest."""

from .annotations import Confidential, generated, requires_confidentiality

__version__ = "0.1.0"

__all__ = ["Confidential", "generated", "requires_confidentiality", "__version__"]
