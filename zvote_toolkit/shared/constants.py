"""All constants for the project"""

import os

from dotenv import load_dotenv

load_dotenv()


class ProtocolConstants:
    """Global class constants for the ballot protocol"""

    BALLOT_VERSION = 1

    # Pallas base field, the field every tree node lives in
    FIELD_MODULUS = (
        0x40000000000000000000000000000000224698FC094CF91B992D30ED00000001
    )
    FIELD_BYTES = 32

    MERKLE_DEPTH = 32
    EMPTY_LEAF = 2

    # Props persisted by the wallet store
    PROP_HEIGHT = "height"
    PROP_REFERENCE_HEIGHT = "reference_height"
    PROP_NF_ROOT = "nf_root"
    PROP_CMX_ROOT = "cmx_root"
    PROP_URLS = "url"
    PROP_ELECTION = "election"
    PROP_KEY = "key"
    PROP_INTERNAL = "internal"


class GlobalConstants:
    """Global class constants for the project"""

    LWD_URL = os.getenv("ZV_LWD_URL", "https://zec.rocks")
    CRYPTO_BACKEND = os.getenv("ZV_CRYPTO_BACKEND") or None
    BLOCK_CHUNK = int(os.getenv("ZV_BLOCK_CHUNK", "1000"))
    LOG_LEVEL = os.getenv("ZV_LOG_LEVEL", "INFO")

    @staticmethod
    def get_crypto_backend_path() -> str:
        """Get the dotted path of the crypto backend factory"""
        path = os.getenv("ZV_CRYPTO_BACKEND") or GlobalConstants.CRYPTO_BACKEND
        if not path:
            raise ValueError(
                "ZV_CRYPTO_BACKEND is not set (expected 'module:factory')"
            )
        return path
