"""Randomness Source: OS-entropy dice draws for rounds the transport does not roll."""

import secrets


class SystemRandomnessSource:
    """Uniform draw in [low, high] from the OS CSPRNG. Not verifiable randomness."""

    async def draw(self, low: int, high: int) -> int:
        if high < low:
            raise ValueError(f"empty range [{low}, {high}]")
        return low + secrets.randbelow(high - low + 1)
