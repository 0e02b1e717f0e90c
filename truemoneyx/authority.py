"""
Digests and signatures of the kernel authorization scheme.

The attesting authority signs two things for every kernel execution:

1. the kernel responses, bound to the caller, so the decision cannot be swapped;
2. a data digest binding the exact function parameters, the kernel params,
   the caller, a nonce and the final opinion.

The contract gate recomputes both digests from the call it is executing and
recovers the signer; any byte of difference yields a different signer.
"""
from typing import NamedTuple, Union

from eth_abi import decode, encode
from eth_abi.exceptions import DecodingError
from eth_account import Account
from eth_account.messages import encode_defunct
from web3 import Web3

AUTH_TYPES = ["bytes", "bytes32", "bytes", "uint256", "bool"]


class AuthToken(NamedTuple):
    """Decoded `auth` field of an authorization bundle."""
    kernel_response_signature: bytes
    kernel_params_digest: bytes
    signature_token: bytes
    nonce: int
    final_opinion: bool


def encode_auth(token: AuthToken) -> bytes:
    return encode(AUTH_TYPES, list(token))


def decode_auth(auth: bytes) -> AuthToken:
    """
    Raises:
        ValueError: If the bytes are not a valid auth encoding
    """
    try:
        return AuthToken(*decode(AUTH_TYPES, auth))
    except DecodingError as e:
        raise ValueError(f"Invalid auth encoding: {e}") from e


def kernel_responses_digest(kernel_responses: bytes, sender: str) -> bytes:
    return Web3.solidity_keccak(["bytes", "address"], [kernel_responses, sender])


def kernel_params_digest(kernel_params: bytes, sender: str) -> bytes:
    return Web3.solidity_keccak(["bytes", "address"], [kernel_params, sender])


def function_params_digest(function_params: bytes) -> bytes:
    return Web3.keccak(function_params)


def data_digest(
    function_params: bytes,
    params_digest: bytes,
    sender: str,
    nonce: int,
    final_opinion: bool,
) -> bytes:
    return Web3.solidity_keccak(
        ["bytes32", "bytes32", "address", "uint256", "bool"],
        [function_params_digest(function_params), params_digest, sender, nonce, final_opinion],
    )


def sign_digest(private_key: Union[str, bytes], digest: bytes) -> bytes:
    """EIP-191 personal-message signature over a 32-byte digest."""
    signed = Account.sign_message(encode_defunct(primitive=digest), private_key=private_key)
    return bytes(signed.signature)


def recover_signer(digest: bytes, signature: bytes) -> str:
    """
    Recover the checksum address that signed `digest`.

    Raises:
        ValueError: If the signature is malformed
    """
    try:
        return Account.recover_message(encode_defunct(primitive=digest), signature=signature)
    except Exception as e:
        # eth-keys raises BadSignature/ValidationError subclasses not exported by eth-account
        raise ValueError(f"Invalid signature: {e}") from e


def issue_auth(
    private_key: Union[str, bytes],
    sender: str,
    function_params: bytes,
    kernel_responses: bytes,
    kernel_params: bytes,
    nonce: int,
    final_opinion: bool = True,
) -> bytes:
    """Produce the `auth` bytes an authority returns for one kernel execution."""
    params_digest = kernel_params_digest(kernel_params, sender)
    token = AuthToken(
        kernel_response_signature=sign_digest(
            private_key, kernel_responses_digest(kernel_responses, sender)
        ),
        kernel_params_digest=params_digest,
        signature_token=sign_digest(
            private_key,
            data_digest(function_params, params_digest, sender, nonce, final_opinion),
        ),
        nonce=nonce,
        final_opinion=final_opinion,
    )
    return encode_auth(token)
