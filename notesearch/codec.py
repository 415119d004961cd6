from typing import List


class VarByteCodec:
    """
    VarByte + gap encoding for posting lists.

    - Note ids are delta-encoded:
        gaps[0] = ids[0] - base   (base = 0 for a whole list)
        gaps[i] = ids[i] - ids[i-1]
      Then each gap is VarByte-encoded.

    - Freqs are encoded as VarByte directly (no delta).

    Notes:
    - We set the MSB (0x80) of the *last* byte of each integer to mark termination.
    - All integers must be non-negative.
    """

    @staticmethod
    def _vb_encode_number(x: int, out: bytearray) -> None:
        # MSB marks the final byte
        if x < 0:
            raise ValueError(f"VarByte cannot encode negative value {x}")
        while True:
            byte = x & 0x7F
            x >>= 7
            if x == 0:
                out.append(byte | 0x80)
                break
            out.append(byte)

    @staticmethod
    def _vb_decode_stream(data: bytes) -> List[int]:
        res: List[int] = []
        cur = 0
        shift = 0
        for b in data:
            cur |= (b & 0x7F) << shift
            if b & 0x80:
                res.append(cur)
                cur = 0
                shift = 0
            else:
                shift += 7
        if shift != 0:
            raise ValueError("Truncated VarByte stream")
        return res

    @classmethod
    def encode_ids(cls, ids: List[int], base: int = 0) -> bytes:
        """
        Encode ascending ids as VarByte gaps relative to base.
        Equal neighbours (gap 0) are allowed: duplicate inserts are kept as-is.
        """
        out = bytearray()
        prev = base
        for d in ids:
            gap = d - prev
            if gap < 0:
                raise ValueError(f"Non-monotonic id sequence at {d} (previous {prev})")
            cls._vb_encode_number(gap, out)
            prev = d
        return bytes(out)

    @classmethod
    def decode_ids(cls, data: bytes, base: int = 0) -> List[int]:
        ids: List[int] = []
        prev = base
        for g in cls._vb_decode_stream(data):
            prev += g
            ids.append(prev)
        return ids

    @classmethod
    def encode_freqs(cls, freqs: List[int]) -> bytes:
        out = bytearray()
        for f in freqs:
            cls._vb_encode_number(f, out)
        return bytes(out)

    @classmethod
    def decode_freqs(cls, data: bytes) -> List[int]:
        return cls._vb_decode_stream(data)
