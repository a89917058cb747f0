import hashlib
import bech32 # type: ignore


def address_from_seed(seed: bytes, prefix: str = "nst") -> str:
    """Creates a Bech32 address from arbitrary seed bytes (first 20 bytes of SHA256)."""
    h20 = hashlib.sha256(seed).digest()[:20]

    # Convert to 5-bit words
    five_bit_r = bech32.convertbits(h20, 8, 5)
    if five_bit_r is None:
        raise ValueError("Error converting to bech32 words")

    return bech32.bech32_encode(prefix, five_bit_r)


def pool_address(pool_name: str, prefix: str = "nstpool") -> str:
    """Custody address under which a pool instance holds staked assets."""
    return address_from_seed(f"pool:{pool_name}".encode(), prefix=prefix)
