"""Loading of the crypto backend named by ZV_CRYPTO_BACKEND."""

import importlib
from typing import Optional

from zvote_toolkit.crypto.interfaces import CryptoBackend
from zvote_toolkit.shared.constants import GlobalConstants
from zvote_toolkit.shared.exceptions import ConfigurationException
from zvote_toolkit.shared.logging import get_logger

_logger = get_logger(__name__)


def load_crypto_backend(path: Optional[str] = None) -> CryptoBackend:
    """
    Import and build a backend from a "package.module:factory" path.

    The factory is called without arguments and must return a CryptoBackend.

    Raises:
        ConfigurationException: path missing, not importable, or wrong type
    """
    if path is None:
        try:
            path = GlobalConstants.get_crypto_backend_path()
        except ValueError as e:
            raise ConfigurationException(str(e))

    module_name, sep, attr = path.partition(":")
    if not sep or not module_name or not attr:
        raise ConfigurationException(
            f"Invalid crypto backend path '{path}', expected 'module:factory'"
        )

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ConfigurationException(f"Cannot import crypto backend '{module_name}': {e}")

    factory = getattr(module, attr, None)
    if factory is None:
        raise ConfigurationException(f"'{module_name}' has no attribute '{attr}'")

    backend = factory() if callable(factory) else factory
    if not isinstance(backend, CryptoBackend):
        raise ConfigurationException(
            f"Crypto backend '{path}' returned {type(backend).__name__}, "
            "expected CryptoBackend"
        )

    _logger.debug("Loaded crypto backend %s from %s", backend.name, path)
    return backend
