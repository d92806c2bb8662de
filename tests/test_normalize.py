from chatctx.entities.normalize import NormalizationConfig, normalize


def test_default_normalization_trims_folds_and_strips_punctuation() -> None:
    assert normalize("  INCREASE Sales! ") == "increasesales"
    assert normalize("data-migration") == "datamigration"


def test_each_behavior_can_be_disabled_independently() -> None:
    assert normalize("  Ab-c ", NormalizationConfig(trim=False, strip_punctuation=False)) == "  ab-c "
    assert normalize("  Ab-c ", NormalizationConfig(lowercase=False)) == "Abc"
    assert normalize("  Ab-c ", NormalizationConfig(strip_punctuation=False)) == "ab-c"


def test_all_disabled_is_identity() -> None:
    cfg = NormalizationConfig(trim=False, lowercase=False, strip_punctuation=False)
    assert normalize(" Mixed Case! ", cfg) == " Mixed Case! "


def test_non_ascii_letters_are_stripped_by_default() -> None:
    assert normalize("María") == "mara"
    assert normalize("李明") == ""
