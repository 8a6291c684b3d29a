from domain.models import NormalizedPOI, SceneAnalysis
from services.poi_matcher import LevenshteinNameSimilarity, attach_category_match, match_pois


def _poi(name, category="restaurant", keywords=()):
    return NormalizedPOI(
        name=name,
        category=category,
        lat=0.0,
        lng=0.0,
        distance_miles=0.05,
        source="commercial-places",
        visual_keywords=tuple(keywords),
    )


class TestLevenshteinNameSimilarity:
    def setup_method(self):
        self.sim = LevenshteinNameSimilarity()

    def test_identical_is_zero(self):
        assert self.sim.dissimilarity("Cafe de Paris", "cafe de paris") == 0.0

    def test_misspelling_is_close(self):
        assert self.sim.dissimilarity("Cafe de Pari", "Cafe de Paris") <= 0.4

    def test_sign_fragment_matches_full_name(self):
        assert self.sim.dissimilarity("Sam's Seafood", "Sam's Seafood Grill") <= 0.4

    def test_unrelated_is_far(self):
        assert self.sim.dissimilarity("Lahaina Grill", "Honolua Store") > 0.4

    def test_empty_is_max(self):
        assert self.sim.dissimilarity("", "Anything") == 1.0


def test_business_name_match_from_visible_text():
    scene = SceneAnalysis(scene_type="restaurant", visible_text=("Cafe de Pari",))
    matched = match_pois([_poi("Cafe de Paris"), _poi("Honolua Store", "store")], scene)
    assert matched[0].business_name_match is True
    assert matched[1].business_name_match is False


def test_keyword_match_is_substring_of_name_or_keywords():
    scene = SceneAnalysis(search_keywords=("Seafood",), visual_elements=("surfboards",))
    pois = [
        _poi("Paia Fish Market", keywords=("paia fish market", "seafood market")),
        _poi("Merriman's", keywords=("merriman's", "restaurant")),
    ]
    matched = match_pois(pois, scene)
    assert [p.keyword_match for p in matched] == [True, False]


def test_no_names_and_no_keywords_leaves_pois_untouched():
    pois = [_poi("Lahaina Grill")]
    matched = match_pois(pois, SceneAnalysis())
    assert matched == pois
    assert matched[0].business_name_match is None
    assert matched[0].keyword_match is None


def test_custom_similarity_is_used():
    class Always:
        def dissimilarity(self, query, candidate):
            return 0.0

    scene = SceneAnalysis(visible_text=("zzz",))
    assert match_pois([_poi("Anything")], scene, similarity=Always())[0].business_name_match is True


def test_category_match_only_after_matching():
    unmatched = attach_category_match([_poi("A")], "restaurant")
    assert unmatched[0].category_match is None

    scene = SceneAnalysis(search_keywords=("x",))
    matched = attach_category_match(match_pois([_poi("A"), _poi("B", "park")], scene), "restaurant")
    assert [p.category_match for p in matched] == [True, False]
