import unittest
from value_types import FrequencyValueTypes, SampleRejection


class TestFrequencyValueTypes(unittest.TestCase):
    def test_enum_names(self):
        self.assertIn("TIMESTAMPED", FrequencyValueTypes.__members__)
        self.assertEqual(FrequencyValueTypes.TIMESTAMPED.value, "timestamped")
        self.assertEqual(FrequencyValueTypes("int"), FrequencyValueTypes.INT)

    def test_enum_arity(self):
        self.assertEqual(FrequencyValueTypes.INT.arity, 1)
        self.assertEqual(FrequencyValueTypes.TIMESTAMPED.arity, 2)
        self.assertEqual(str(FrequencyValueTypes.FLOAT), "Float")


class TestSampleRejection(unittest.TestCase):
    def test_description(self):
        self.assertEqual(SampleRejection.FUTURE.value, "future")
        self.assertIn("future", str(SampleRejection.FUTURE))


if __name__ == "__main__":
    unittest.main()
