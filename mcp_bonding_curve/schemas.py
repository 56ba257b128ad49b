"""
Pydantic Data Models and Validation Schemas

This module defines the data models exchanged with the bonding curve core:
issuance messages, curve parameters, persisted state records and the
responses returned by trades and queries.

Key Components:
- CurveType Enum: the closed set of supported curve shapes
- CurveParameters: discriminated union over ConstantCurve, LinearCurve and SquareRootCurve
- InstantiateMsg: everything fixed at issuance (token metadata, reserve denom, precision, curve)
- TokenMetadata / Denomination: the immutable records persisted at issuance
- SupplyState: the paired total_supply / total_reserve scalars
- TradeEvent / Quote / CurveInfo: observable results of buy, sell and queries

Curve parameters are ``Decimal`` so the exact digits written by the issuer are
kept; their range and precision are enforced by the curve library, which raises
InvalidCurveParameters. Amounts are raw integers of arbitrary size.
"""
from decimal import Decimal
from enum import Enum
from typing import Annotated, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class CurveType(str, Enum):
    constant = "constant"
    linear = "linear"
    square_root = "square_root"


class ConstantCurve(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["constant"] = "constant"
    value: Decimal = Field(description="Reserve paid per whole supply token.")


class LinearCurve(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["linear"] = "linear"
    slope: Decimal = Field(description="Price increase per whole supply token minted.")


class SquareRootCurve(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: Literal["square_root"] = "square_root"
    slope: Decimal = Field(description="Price is slope * sqrt(supply).")


CurveParameters = Annotated[
    Union[ConstantCurve, LinearCurve, SquareRootCurve],
    Field(discriminator="type"),
]


class DecimalPlaces(BaseModel):
    model_config = ConfigDict(frozen=True)

    supply: int = Field(ge=0, le=18)
    reserve: int = Field(ge=0, le=18)


class Coin(BaseModel):
    denom: str
    amount: int = Field(ge=0)


class InstantiateMsg(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=3, max_length=50)
    symbol: str = Field(pattern=r"^[a-zA-Z\-]{3,12}$")
    decimals: int = Field(ge=0, le=18, description="Decimal places of the supply token.")
    reserve_denom: str = Field(pattern=r"^[a-zA-Z][a-zA-Z0-9/:._\-]{1,127}$")
    reserve_decimals: int = Field(ge=0, le=18, description="Decimal places of the reserve asset.")
    curve: CurveParameters

    @property
    def decimal_places(self) -> DecimalPlaces:
        return DecimalPlaces(supply=self.decimals, reserve=self.reserve_decimals)


class InstanceConfig(BaseModel):
    """Instantiate message persisted by the instance registry, one JSON file per instance."""

    instance_id: str = Field(pattern=r"^[a-zA-Z0-9_\-]{1,100}$")
    instantiate: InstantiateMsg
    token_cap: Optional[int] = Field(default=None, ge=0, description="Optional mint cap of the supply token.")


class Denomination(BaseModel):
    """Immutable reserve/supply precision record persisted at issuance."""

    model_config = ConfigDict(frozen=True)

    reserve_denom: str
    decimals: DecimalPlaces


class TokenMetadata(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    symbol: str
    decimals: int


class TokenInfo(TokenMetadata):
    total_supply: int


class SupplyState(BaseModel):
    model_config = ConfigDict(frozen=True)

    total_supply: int = Field(default=0, ge=0)
    total_reserve: int = Field(default=0, ge=0)


class TradeEvent(BaseModel):
    action: Literal["buy", "sell"]
    sender: str
    recipient: str
    supply: int = Field(description="Supply tokens minted (buy) or burned (sell).")
    reserve: int = Field(description="Reserve kept by the curve (buy) or paid out (sell).")
    refund: int = Field(default=0, description="Part of a buy deposit returned to the sender.")
    total_supply: int
    total_reserve: int


class Quote(BaseModel):
    action: Literal["buy", "sell"]
    amount_in: int
    amount_out: int
    new_supply: int
    new_reserve: int
    spot_price: str
    refund: int = 0


class CurveInfo(BaseModel):
    spot_price: str
    reserve: str
    supply: str
    reserve_for_supply: str = Field(description="Reserve the curve requires for the current supply.")
    reserve_denom: str
    raw_reserve: int
    raw_supply: int
    curve: Optional[CurveParameters] = None
