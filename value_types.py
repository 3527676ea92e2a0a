from aenum import Enum


class FrequencyValueTypes(Enum):
    _init_ = "value string arity"
    INT = "int", "Int", 1
    FLOAT = "float", "Float", 1
    TIMESTAMPED = "timestamped", "Timestamped", 2

    def __str__(self):
        return self.string


class SampleRejection(Enum):
    _init_ = "value description"
    FUTURE = "future", "Cannot add a sample stamped in the future"
    INVALID_TIME = "invalid_time", "Sample time must be a finite number"
    NOT_INTEGER = "not_integer", "Sample frequency must be an integer"
    NON_POSITIVE = "non_positive", "Sample frequency must be a positive integer"

    def __str__(self):
        return self.description
