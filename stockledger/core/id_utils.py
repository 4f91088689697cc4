from datetime import date

import shortuuid

_BATCH_CODE_ALPHABET = "23456789ABCDEFGHJKLMNPQRSTUVWXYZ"


def generate_batch_code(received_on: date, length: int = 6) -> str:
    suffix = shortuuid.ShortUUID(alphabet=_BATCH_CODE_ALPHABET).random(length=length)
    return f"B{received_on:%Y%m%d}-{suffix}"
