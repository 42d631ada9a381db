import string

_BASE36_DIGITS = string.digits + string.ascii_lowercase

# user agents are truncated to this many UTF-16 code units before hashing
USER_AGENT_PREFIX = 50


def _to_base36(value: int) -> str:
    if value == 0:
        return "0"
    digits = []
    while value:
        value, rem = divmod(value, 36)
        digits.append(_BASE36_DIGITS[rem])
    return "".join(reversed(digits))


def _utf16_units(text: str):
    encoded = text.encode("utf-16-le", "surrogatepass")
    for i in range(0, len(encoded), 2):
        yield encoded[i] | (encoded[i + 1] << 8)


def _hash_units(units) -> str:
    h = 0
    for unit in units:
        h = (h * 31 + unit) & 0xFFFFFFFF
    if h & 0x80000000:
        h -= 0x100000000
    return _to_base36(abs(h))


def hash_string(text: str) -> str:
    """
    31-multiplier rolling hash over UTF-16 code units, wrapped to a signed
    32-bit integer and rendered as the base-36 absolute value.
    Not cryptographic; collisions are expected.
    """
    return _hash_units(_utf16_units(text))


def visitor_hash(ip: str, user_agent: str) -> str:
    """Weak visitor fingerprint used for approximate unique counts."""
    # the prefix may end on half a surrogate pair
    agent = list(_utf16_units(user_agent))[:USER_AGENT_PREFIX]
    return _hash_units(list(_utf16_units(ip)) + agent)
