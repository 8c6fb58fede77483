class LendgraphError(Exception):
    """
    Base exception used as the parent class for all exceptions raised by this package.

    Calling code should catch `LendgraphError` and derived classes separately before general
    exceptions, e.g.:

    ```
    try:
        lendgraph.some_function()
    except SpecificLendgraphError:
        ... # handle a specific exception
    except LendgraphError:
        ... # handle non-specific lendgraph exception
    except Exception:
        ... # handle exceptions raised by 3rd party dependencies or Python built-ins
    ```

    An optional string-formatted message may be attached to the exception and retrieved by accessing
    the `.message` attribute.
    """

    message: str | None = None

    def __init__(self, message: str | None = None) -> None:
        if message:
            self.message = message
            super().__init__(message)


class LendgraphValueError(LendgraphError): ...



class InvalidAddress(LendgraphValueError):
    """
    Raised when a value cannot be interpreted as a 20-byte EVM address.
    """

    def __init__(self, address: object) -> None:
        self.address = address
        super().__init__(message=f"Invalid address {address!r}")

    def __reduce__(self) -> tuple[type["InvalidAddress"], tuple[object]]:
        # Pickling will raise an exception if a reduction method is not defined
        return self.__class__, (self.address,)
