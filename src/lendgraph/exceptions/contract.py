from typing import Any

from lendgraph.exceptions.base import LendgraphError


class ContractReadError(LendgraphError):
    """
    Raised when a point-in-time contract read (`eth_call`) reverts, returns undecodable data, or
    cannot be delivered by the RPC endpoint.

    `transient` is set when the read failed because the endpoint could not be reached, in which
    case the contract state is unknown rather than absent.
    """

    def __init__(self, function: str, address: str, error: str, transient: bool = False) -> None:
        self.function = function
        self.address = address
        self.error = error
        self.transient = transient
        super().__init__(message=f"Call to {function} at {address} failed: {error}")

    def __reduce__(self) -> tuple[Any, ...]:
        # Pickling will raise an exception if a reduction method is not defined
        return self.__class__, (self.function, self.address, self.error, self.transient)
