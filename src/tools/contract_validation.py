class BaseType:

    def __init__(self):
        raise Exception("Cannot instantiate")

    @staticmethod
    def validate():
        raise NotImplementedError("Subclasses should implement this!")


class StringType(BaseType):

    @staticmethod
    def validate(value):
        if not isinstance(value, str):
            raise TypeError("Value must be a string.")


class IntegerType(BaseType):

    @staticmethod
    def validate(value):
        # bool is a subclass of int, a JSON true is not a dimension
        if isinstance(value, bool) or not isinstance(value, int):
            raise TypeError("Value must be an integer.")


class PositiveIntegerType(BaseType):

    @staticmethod
    def validate(value):
        IntegerType.validate(value)
        if value <= 0:
            raise TypeError("Value must be a positive integer.")


class ChoiceType(BaseType):

    def __init__(self, *choices):
        self.choices = choices

    def validate(self, value):
        if value not in self.choices:
            raise TypeError(f"Value must be one of {list(self.choices)}.")


def validate_contract(contract, data):
    if not isinstance(data, dict):
        raise TypeError("Value must be an object.")
    for key, value in contract.items():
        if key not in data:
            raise KeyError(f"Missing key: {key}")
        if isinstance(value, dict):
            validate_contract(value, data[key])
        else:
            value.validate(data[key])


class ContractValidationError(Exception):
    """Exception raised when contract validation fails."""

    def __init__(self, error_type: str, message: str):
        self.error_type = error_type
        self.message = message
        super().__init__(message)


def check_contract(contract, data):
    """
    Validate data against a contract, normalizing failures.

    Args:
        contract: The contract schema to validate against
        data: The data to validate

    Raises:
        ContractValidationError: with error_type "missing_field" or
            "invalid_type" depending on what went wrong
    """
    try:
        validate_contract(contract, data)
    except KeyError as e:
        raise ContractValidationError(
            "missing_field", f"Missing required field: {str(e)}"
        ) from e
    except TypeError as e:
        raise ContractValidationError(
            "invalid_type", f"Invalid field type: {str(e)}"
        ) from e
