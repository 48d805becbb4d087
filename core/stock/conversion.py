"""
단위 변환 (unloading)

벌크(Kg) → 소분(Ml) 재포장 시 density(kg/liter)로 수량 변환.

- Kg → Ml: output = input / density * 1000
- Ml → Kg: output = input / 1000 * density
- 같은 단위: 변환 없음
"""

from dataclasses import dataclass
from decimal import Decimal
from enum import Enum

from core.errors import ValidationError
from core.utils.money import ZERO


class ConversionType(str, Enum):
    """변환 종류"""

    NONE = "none"
    KG_TO_ML = "kg_to_ml"
    ML_TO_KG = "ml_to_kg"


KG = "Kg"
ML = "Ml"

# 변환 결과 저장 정밀도
OUTPUT_PRECISION = Decimal("0.0001")


@dataclass(frozen=True)
class ConversionResult:
    """변환 결과

    Attributes:
        input_quantity: 입력 수량 (출발 produk 단위)
        output_quantity: 출력 수량 (도착 produk 단위)
        conversion_type: 변환 종류
        density: 사용한 density (변환 없으면 None)
    """

    input_quantity: Decimal
    output_quantity: Decimal
    conversion_type: ConversionType
    density: Decimal | None = None

    @property
    def formula(self) -> str:
        """사람이 읽는 변환식 (keterangan용)"""
        if self.conversion_type == ConversionType.KG_TO_ML:
            return f"{self.input_quantity} KG / {self.density} * 1000 = {self.output_quantity:.2f} ML"
        if self.conversion_type == ConversionType.ML_TO_KG:
            return f"{self.input_quantity} ML / 1000 * {self.density} = {self.output_quantity:.2f} KG"
        return f"{self.input_quantity}"


def convert_quantity(
    quantity: Decimal,
    from_unit: str,
    to_unit: str,
    density: Decimal | None,
    product_name: str = "",
) -> ConversionResult:
    """수량 단위 변환

    Args:
        quantity: 입력 수량
        from_unit: 출발 produk satuan
        to_unit: 도착 produk satuan
        density: 출발 produk density_kg_per_liter
        product_name: 오류 메시지용 produk 이름

    Raises:
        ValidationError: 단위가 다른데 density가 없거나 0 이하인 경우
    """
    if from_unit == KG and to_unit == ML:
        conversion_type = ConversionType.KG_TO_ML
    elif from_unit == ML and to_unit == KG:
        conversion_type = ConversionType.ML_TO_KG
    else:
        return ConversionResult(quantity, quantity, ConversionType.NONE)

    if density is None or density <= ZERO:
        raise ValidationError(
            f"Product {product_name or '?'} has no density factor for {from_unit} → {to_unit} conversion",
            {"from_unit": from_unit, "to_unit": to_unit, "density": density},
        )

    if conversion_type == ConversionType.KG_TO_ML:
        output = quantity / density * Decimal("1000")
    else:
        output = quantity / Decimal("1000") * density

    return ConversionResult(quantity, output.quantize(OUTPUT_PRECISION), conversion_type, density)
