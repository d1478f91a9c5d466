"""
Example of encrypted fields and lookup references on document entities.

This example encrypts a car before it would be stored, shows the raw
stored form, decrypts it again and resolves its owner to a display label.
"""

import json
import os
from typing import Annotated, Optional

from docfacade import (
    DocFacadeConfig,
    DocumentEntity,
    Encrypted,
    FieldEncryptionInterceptor,
    LookupReference,
    MetadataRegistry,
    ReferenceResolver,
)


class Company(DocumentEntity):
    """Reference target shown by breadcrumb or name."""

    name: Optional[str] = None
    breadcrumb: Optional[str] = None


class Car(DocumentEntity):
    """
    Car with sensitive fields.

    The VIN is encrypted at rest; the owner is stored as a company id.
    """

    license_plate: str
    vin: Annotated[Optional[str], Encrypted()] = None
    owner: Annotated[Optional[str], LookupReference(Company)] = None


def main() -> None:
    """Example usage of encrypted fields and lookup references."""
    # Development mode generates a throwaway key when none is configured
    os.environ["DOCFACADE_MODE"] = "DEV"
    DocFacadeConfig.initialize()

    registry = MetadataRegistry()
    registry.register_all([Car, Company])
    interceptor = FieldEncryptionInterceptor.from_config(registry)

    car = Car(id="cars/1", license_plate="1-ABC-123", vin="WDB1234561A123456", owner="companies/1")

    stored = interceptor.before_store(car)
    print("\nCar as stored (VIN encrypted):")
    print(json.dumps(stored.model_dump(), indent=2))

    loaded = interceptor.after_load(stored)
    print("\nCar after load:")
    print(json.dumps(loaded.model_dump(), indent=2))

    candidates = {"Company": [Company(id="companies/1", name="Acme", breadcrumb="Holding > Acme")]}
    resolver = ReferenceResolver(registry)
    print("\nReferences:")
    for row in resolver.project([loaded, Car(id="cars/2", license_plate="2-XYZ-999")], candidates):
        print(row)


if __name__ == "__main__":
    main()
