"""Product registration: command and handler."""

from protean import handle
from protean.fields import Float, Integer, String, Text
from protean.utils.globals import current_domain

from storefront.catalogue.product.product import Product
from storefront.domain import storefront


@storefront.command(part_of="Product")
class RegisterProduct:
    """Add a product to the catalogue with its opening stock."""

    name = String(required=True, max_length=100)
    description = Text()
    price = Float(required=True, min_value=0.0)
    stock_available = Integer(default=0, min_value=0)
    image_url = String(max_length=500)


@storefront.command_handler(part_of=Product)
class ProductManagementHandler:
    @handle(RegisterProduct)
    def register_product(self, command):
        product = Product.create(
            name=command.name,
            price=command.price,
            stock_available=command.stock_available or 0,
            description=command.description,
            image_url=command.image_url,
        )
        current_domain.repository_for(Product).add(product)
        return str(product.id)
