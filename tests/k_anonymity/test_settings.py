"""
Tests for k-anonymity settings
"""

import pytest

from clinical_anonymize.errors import PrivacyParameterError
from clinical_anonymize.gtrees import GTree, make_hierarchy_gtree
from clinical_anonymize.k_anonymity.settings import (
    DEFAULT_K,
    GeneralizationStrategy,
    KAnonymitySetting,
    SuppressionStrategy,
)


class TestKAnonymitySetting:
    """
    Tests for KAnonymitySetting validation.
    """

    def test_defaults(self):
        setting = KAnonymitySetting.from_rule_settings({"quasiIdentifiers": ["Patient.gender"]})
        assert setting.k == DEFAULT_K
        assert setting.quasi_identifiers == ["Patient.gender"]
        assert setting.generalization_strategy is GeneralizationStrategy.RANGE
        assert setting.suppression_strategy is SuppressionStrategy.REDACT
        assert setting.generalization_hierarchy is None
        assert setting.generalization_level == 1

    def test_from_rule_settings(self):
        setting = KAnonymitySetting.from_rule_settings(
            {
                "k": "10",
                "quasiIdentifiers": "Patient.birthDate,Patient.address.postalCode",
                "generalizationStrategy": "Suppression",
                "suppressionStrategy": "remove",
                "generalizationLevel": 2,
            }
        )
        assert setting.k == 10
        assert setting.quasi_identifiers == ["Patient.birthDate", "Patient.address.postalCode"]
        assert setting.generalization_strategy is GeneralizationStrategy.SUPPRESSION
        assert setting.suppression_strategy is SuppressionStrategy.REMOVE
        assert setting.generalization_level == 2

    @pytest.mark.parametrize("k", [1, 0, -3])
    def test_k_too_small(self, k):
        with pytest.raises(PrivacyParameterError, match="k must be at least 2"):
            KAnonymitySetting(["Patient.gender"], k=k)

    def test_k_minimum(self):
        assert KAnonymitySetting(["Patient.gender"], k=2).k == 2

    @pytest.mark.parametrize("k", ["many", 2.5, True])
    def test_k_not_an_integer(self, k):
        with pytest.raises(PrivacyParameterError, match="k must be an integer"):
            KAnonymitySetting.from_rule_settings({"k": k, "quasiIdentifiers": ["Patient.gender"]})

    @pytest.mark.parametrize("quasi_identifiers", [None, [], "", " , "])
    def test_missing_quasi_identifiers(self, quasi_identifiers):
        with pytest.raises(PrivacyParameterError, match="quasi-identifier"):
            KAnonymitySetting.from_rule_settings({"k": 3, "quasiIdentifiers": quasi_identifiers})

    def test_quasi_identifiers_wrong_type(self):
        with pytest.raises(PrivacyParameterError, match="quasiIdentifiers must be a list"):
            KAnonymitySetting.from_rule_settings({"k": 3, "quasiIdentifiers": 42})

    def test_unknown_strategy(self):
        with pytest.raises(PrivacyParameterError, match="Unknown generalizationStrategy"):
            KAnonymitySetting(["Patient.gender"], generalization_strategy="mondrian")
        with pytest.raises(PrivacyParameterError, match="Unknown suppressionStrategy"):
            KAnonymitySetting(["Patient.gender"], suppression_strategy="blur")

    def test_invalid_generalization_level(self):
        with pytest.raises(PrivacyParameterError, match="generalizationLevel"):
            KAnonymitySetting(["Patient.gender"], generalization_level=0)

    def test_hierarchy_mapping(self):
        setting = KAnonymitySetting.from_rule_settings(
            {
                "quasiIdentifiers": ["Patient.address.postalCode"],
                "generalizationStrategy": "hierarchy",
                "generalizationHierarchy": {"98101": ["981**", "98***"], "98102": "981**"},
            }
        )
        assert isinstance(setting.generalization_hierarchy, GTree)
        assert setting.generalization_hierarchy.generalize("98102") == "981**"

    def test_hierarchy_gtree(self):
        gtree = make_hierarchy_gtree({"female": ["*"]})
        setting = KAnonymitySetting(["Patient.gender"], generalization_hierarchy=gtree)
        assert setting.generalization_hierarchy is gtree

    def test_invalid_hierarchy(self):
        with pytest.raises(PrivacyParameterError, match="generalizationHierarchy"):
            KAnonymitySetting.from_rule_settings(
                {"quasiIdentifiers": ["Patient.gender"], "generalizationHierarchy": ["f", "m"]}
            )
        with pytest.raises(PrivacyParameterError, match="Invalid generalizationHierarchy"):
            KAnonymitySetting(
                ["Patient.gender"],
                generalization_hierarchy={"a": ["b"], "c": ["d"], "b": ["d"]},
            )

    def test_repr(self):
        setting = KAnonymitySetting(["Patient.gender"], k=3)
        assert "k=3" in repr(setting)
