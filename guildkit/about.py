"""Package metadata."""

__all__ = ["__author__", "__email__", "__license__", "__url__", "__version__"]

__author__ = "Faster Speeding"
__email__ = "lucina@lmbyrne.dev"
__license__ = "BSD"
__url__ = "https://github.com/FasterSpeeding/guildkit"
__version__ = "0.1.0"
