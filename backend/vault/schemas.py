# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""Pydantic request / response models for the vault endpoints."""

from typing import List

from pydantic import BaseModel


# -- Requests --------------------------------------------------------------
# The client sends the *plaintext* value; the server encrypts it before
# persisting.  Nonce and ciphertext are produced server-side and never
# accepted from the client.


class EntryWrite(BaseModel):
    value: str


# -- Responses -------------------------------------------------------------


class EntryData(BaseModel):
    name: str
    value: str


class EntryListData(BaseModel):
    entries: List[EntryData]
    failed: List[str] = []
