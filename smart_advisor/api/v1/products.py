"""GET /v1/products/{product}/defaults - default inputs per financing product"""

from dataclasses import asdict
from fastapi import APIRouter, HTTPException

from smart_advisor.api.v1.schemas import DefaultsResponse, LoanInputsSchema
from smart_advisor.domain.exceptions import UnsupportedProduct
from smart_advisor.domain.models import LoanInputs, ProductType

router = APIRouter()


@router.get("/products/{product}/defaults", response_model=DefaultsResponse)
def get_product_defaults(product: str):
    """
    Starting inputs for a product.

    Returns:
        Principal, term, rate and fee defaults for the product
    """
    try:
        product_type = ProductType.parse(product)
    except UnsupportedProduct as e:
        raise HTTPException(status_code=404, detail=e.user_message)

    inputs = asdict(LoanInputs.defaults(product_type))
    return DefaultsResponse(product=product_type.value, inputs=LoanInputsSchema(**inputs))
