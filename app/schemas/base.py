from decimal import Decimal

from pydantic import BaseModel, ConfigDict, field_serializer


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class MoneyModel(CamelModel):
    @field_serializer("price", "total_amount", check_fields=False)
    def serialize_money(self, value: Decimal) -> str:
        return format(Decimal(value).quantize(Decimal("0.01")), "f")
