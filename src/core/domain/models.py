"""Modelos del dominio (Pydantic v2).

Por qué Pydantic en el dominio:
- Los payloads de Outseta llegan como JSON sin tipar; aquí se declara qué
  campos consumimos y con qué nulabilidad.
- Los alias PascalCase son el contrato de cable con la API y deben
  reproducirse exactamente al serializar (`by_alias=True`).

Nota:
- Los campos desconocidos se ignoran; un campo obligatorio ausente hace
  fallar la validación (el cliente lo traduce a `ApiError`).
"""

from __future__ import annotations

from enum import Enum, IntEnum
from typing import Any, Generic, TypeVar

from pydantic import BaseModel, Field
from pydantic.config import ConfigDict

T = TypeVar("T")


class WireModel(BaseModel):
    """Base para entidades remotas con nombres PascalCase."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)


class BillingAddOnType(IntEnum):
    """Discriminador `AddOn.BillingAddOnType` de Outseta."""

    FIXED = 1
    USAGE = 2


class PlanFamily(WireModel):
    uid: str = Field(..., alias="Uid")
    name: str | None = Field(default=None, alias="Name")
    description: str | None = Field(default=None, alias="Description")


class Plan(WireModel):
    uid: str = Field(..., alias="Uid")
    name: str | None = Field(default=None, alias="Name")
    description: str | None = Field(default=None, alias="Description")
    monthly_rate: float | None = Field(default=None, alias="MonthlyRate")
    annual_rate: float | None = Field(default=None, alias="AnnualRate")
    trial_period_days: int | None = Field(default=None, alias="TrialPeriodDays")
    is_active: bool | None = Field(default=None, alias="IsActive")
    plan_family: PlanFamily | None = Field(default=None, alias="PlanFamily")


class AddOn(WireModel):
    uid: str = Field(..., alias="Uid")
    name: str | None = Field(default=None, alias="Name")
    billing_add_on_type: int | None = Field(
        default=None,
        alias="BillingAddOnType",
        description="1 = cuota fija, 2 = facturado por uso.",
    )

    @property
    def is_usage_billed(self) -> bool:
        return self.billing_add_on_type == BillingAddOnType.USAGE


class SubscriptionAddOn(WireModel):
    uid: str = Field(..., alias="Uid")
    add_on: AddOn | None = Field(default=None, alias="AddOn")
    quantity: int | None = Field(default=None, alias="Quantity")


class Subscription(WireModel):
    uid: str = Field(..., alias="Uid")
    billing_renewal_term: int | None = Field(default=None, alias="BillingRenewalTerm")
    plan: Plan | None = Field(default=None, alias="Plan")
    start_date: str | None = Field(default=None, alias="StartDate")
    renewal_date: str | None = Field(default=None, alias="RenewalDate")
    subscription_add_ons: list[SubscriptionAddOn] | None = Field(default=None, alias="SubscriptionAddOns")

    def find_add_on(self, add_on_uid: str) -> SubscriptionAddOn | None:
        """Busca la suscripción de add-on cuyo `AddOn.Uid` coincide."""

        for subscription_add_on in self.subscription_add_ons or []:
            if subscription_add_on.add_on is not None and subscription_add_on.add_on.uid == add_on_uid:
                return subscription_add_on
        return None


class Person(WireModel):
    uid: str | None = Field(default=None, alias="Uid")
    email: str | None = Field(default=None, alias="Email")
    first_name: str | None = Field(default=None, alias="FirstName")
    last_name: str | None = Field(default=None, alias="LastName")
    coffee_preference: str | None = Field(default=None, alias="CoffeePreference")


class Account(WireModel):
    uid: str = Field(..., alias="Uid")
    name: str | None = Field(default=None, alias="Name")
    mascot: str | None = Field(default=None, alias="Mascot")
    current_subscription: Subscription | None = Field(default=None, alias="CurrentSubscription")
    primary_contact: Person | None = Field(default=None, alias="PrimaryContact")

    @property
    def current_plan_name(self) -> str | None:
        if self.current_subscription and self.current_subscription.plan:
            return self.current_subscription.plan.name
        return None


class PersonAccount(WireModel):
    is_primary: bool | None = Field(default=None, alias="IsPrimary")
    account: Account | None = Field(default=None, alias="Account")


class PersonRecord(Person):
    """Persona tal como la devuelve `/crm/people` (con sus cuentas)."""

    person_account: list[PersonAccount] = Field(default_factory=list, alias="PersonAccount")


class ProfileAccount(WireModel):
    uid: str | None = Field(default=None, alias="Uid")
    name: str | None = Field(default=None, alias="Name")


class Profile(Person):
    """Registro devuelto por `/api/v1/profile` para el portador del token."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    profile_image_url: str | None = Field(default=None, alias="ProfileImageS3Url")
    account: ProfileAccount | None = Field(default=None, alias="Account")


class UsageRecord(WireModel):
    uid: str | None = Field(default=None, alias="Uid")
    usage_date: str | None = Field(default=None, alias="UsageDate")
    amount: float | None = Field(default=None, alias="Amount")
    created: str | None = Field(default=None, alias="Created")
    updated: str | None = Field(default=None, alias="Updated")


class InvoiceLineItem(WireModel):
    description: str | None = Field(default=None, alias="Description")
    amount: float | None = Field(default=None, alias="Amount")
    quantity: float | None = Field(default=None, alias="Quantity")
    start_date: str | None = Field(default=None, alias="StartDate")
    end_date: str | None = Field(default=None, alias="EndDate")


class SubscriptionChangePreview(WireModel):
    """Efecto financiero proyectado de un cambio de plan (sin aplicarlo)."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    invoice_date: str | None = Field(default=None, alias="InvoiceDate")
    subtotal: float | None = Field(default=None, alias="Subtotal")
    tax: float | None = Field(default=None, alias="Tax")
    total: float | None = Field(default=None, alias="Total")
    balance: float | None = Field(default=None, alias="Balance")
    refunded_amount: float | None = Field(default=None, alias="RefundedAmount")
    line_items: list[InvoiceLineItem] = Field(default_factory=list, alias="InvoiceLineItems")


class TokenResponse(BaseModel):
    """Respuesta de `/api/v1/tokens` (snake_case en el cable)."""

    model_config = ConfigDict(extra="ignore")

    access_token: str = Field(..., min_length=1)
    token_type: str | None = None
    expires_in: int | None = None


class TokenClaims(BaseModel):
    """Claims de un JWT de Outseta. Se conservan también los no declarados."""

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    sub: str | None = None
    email: str | None = None
    name: str | None = None
    account_uid: str | None = Field(default=None, alias="outseta:accountUid")
    is_primary: bool | str | None = Field(default=None, alias="outseta:isPrimary")
    iat: int | float | None = None
    exp: int | float | None = None


class ValidationErrorDetail(BaseModel):
    """Entrada de `EntityValidationErrors[].ValidationErrors[]`."""

    type_name: str = "Entity"
    property_name: str | None = None
    error_message: str | None = None

    def __str__(self) -> str:
        return f"[{self.type_name}] {self.property_name}: {self.error_message}"


class Page(BaseModel, Generic[T]):
    """Envoltorio de listados (`{"metadata": ..., "items": [...]}`)."""

    model_config = ConfigDict(extra="ignore")

    items: list[T] = Field(default_factory=list)


class VerificationMethod(str, Enum):
    """Método(s) de verificación de un JWT."""

    KEYSET = "keyset"
    PROFILE = "profile"
    BOTH = "both"

    @classmethod
    def _missing_(cls, value: object) -> "VerificationMethod | None":
        if isinstance(value, str):
            normalized = value.strip().lower()
            if normalized == "jwks":
                return cls.KEYSET
            for member in cls:
                if member.value == normalized:
                    return member
        return None

    @property
    def uses_key_set(self) -> bool:
        return self in (VerificationMethod.KEYSET, VerificationMethod.BOTH)

    @property
    def uses_profile(self) -> bool:
        return self in (VerificationMethod.PROFILE, VerificationMethod.BOTH)


class ProfileVerification(BaseModel):
    """Resultado de la verificación remota: claims sin verificar + perfil."""

    claims: TokenClaims
    profile: Profile


class VerificationResult(BaseModel):
    """Agregado por llamada a `verify`; solo contiene lo que se pidió."""

    keyset_payload: TokenClaims | None = Field(
        default=None,
        description="Claims recuperados al verificar la firma contra el JWKS.",
    )
    profile_payload: TokenClaims | None = Field(
        default=None,
        description="Claims decodificados localmente (sin verificar) en la ruta de perfil.",
    )
    profile_data: Profile | None = Field(
        default=None,
        description="Registro de persona/cuenta devuelto por el endpoint de perfil.",
    )


class Registration(BaseModel):
    """Datos de alta de persona + cuenta."""

    plan_uid: str = Field(..., min_length=1)
    email: str = Field(..., min_length=3)
    first_name: str | None = None
    last_name: str | None = None
    coffee_preference: str | None = None
    account_name: str = Field(..., min_length=1)
    account_mascot: str | None = None
    billing_renewal_term: int = 2

    def to_payload(self) -> dict[str, Any]:
        return {
            "Name": self.account_name,
            "Mascot": self.account_mascot,
            "Subscriptions": [
                {
                    "BillingRenewalTerm": self.billing_renewal_term,
                    "Plan": {"Uid": self.plan_uid},
                }
            ],
            "PersonAccount": [
                {
                    "IsPrimary": True,
                    "Person": {
                        "Email": self.email,
                        "FirstName": self.first_name,
                        "LastName": self.last_name,
                        "CoffeePreference": self.coffee_preference,
                    },
                }
            ],
        }


class PlanDraft(BaseModel):
    """Datos para crear un plan."""

    name: str = Field(..., min_length=1)
    monthly_rate: float = Field(..., ge=0)
    plan_family_uid: str = Field(..., min_length=1)
    trial_period_days: int = Field(default=14, ge=0)
    is_active: bool = True

    def to_payload(self) -> dict[str, Any]:
        return {
            "AccountRegistrationMode": 1,
            "IsActive": self.is_active,
            "Name": self.name,
            "PlanFamily": {"Uid": self.plan_family_uid},
            "MonthlyRate": self.monthly_rate,
            "TrialPeriodDays": self.trial_period_days,
        }
