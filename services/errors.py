"""
Raffle errors

Every error carries the contract revert name as ``code`` and
the HTTP status the routes answer with. Raising any of them leaves the raffle
state exactly as it was before the call.
"""

from fastapi import status


class RaffleError(Exception):
    code = "RaffleError"
    status_code = status.HTTP_400_BAD_REQUEST

    def __init__(self, message: str = None, **details):
        self.details = details
        super().__init__(message or self.code)


# User input

class RaffleNotOpen(RaffleError):
    code = "RaffleNotOpen"
    status_code = status.HTTP_409_CONFLICT


class RaffleNotPaused(RaffleError):
    code = "RaffleNotPaused"
    status_code = status.HTTP_409_CONFLICT


class InsufficientEntryFee(RaffleError):
    code = "InsufficientEntryFee"


class InsufficientFunds(RaffleError):
    code = "InsufficientFunds"


class InvalidConfiguration(RaffleError):
    code = "InvalidConfiguration"


# Authorization

class AddressNotAuthorized(RaffleError):
    code = "AddressNotAuthorized"
    status_code = status.HTTP_403_FORBIDDEN


class OnlyCoordinatorCanFulfill(RaffleError):
    code = "OnlyCoordinatorCanFulfill"
    status_code = status.HTTP_403_FORBIDDEN


# Preconditions

class UpkeepNotNeeded(RaffleError):
    code = "UpkeepNotNeeded"
    status_code = status.HTTP_409_CONFLICT


class UnknownRequest(RaffleError):
    code = "UnknownRequest"
    status_code = status.HTTP_409_CONFLICT


class NoPlayers(RaffleError):
    code = "NoPlayers"
    status_code = status.HTTP_409_CONFLICT


class InvalidRandomWords(RaffleError):
    code = "InvalidRandomWords"


# External dependencies

class InvalidPriceFeed(RaffleError):
    code = "InvalidPriceFeed"
    status_code = status.HTTP_502_BAD_GATEWAY


class InvalidAddress(RaffleError):
    code = "InvalidAddress"


# Fatal

class TransferFailed(RaffleError):
    code = "TransferFailed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
