from tags import FALLBACK_TAG, detect_tags, domain_tag, is_company_tag


def test_fallback_when_nothing_matches():
    assert detect_tags("Quarterly earnings report released") == [FALLBACK_TAG]
    assert FALLBACK_TAG == "Tech"


def test_at_most_four_tags_in_match_order():
    title = "AI security cloud javascript iOS database"
    assert detect_tags(title) == ["AI", "Security", "Cloud", "Web"]


def test_matching_is_case_insensitive():
    assert detect_tags("KUBERNETES operators") == detect_tags("kubernetes operators")


def test_topics_come_before_companies():
    tags = detect_tags("OpenAI releases GPT-5")
    assert tags[0] == "AI"
    assert "OpenAI" in tags


def test_domain_fallback_when_no_keyword_matches():
    assert detect_tags("Quarterly earnings report released", "https://arxiv.org/abs/1234") == ["Science"]


def test_domain_fallback_ignored_when_keywords_match():
    tags = detect_tags("A new Rust compiler", "https://arxiv.org/abs/1234")
    assert "Science" not in tags
    assert "Programming" in tags


def test_domain_fallback_unknown_host_gives_default():
    assert detect_tags("Quarterly earnings report released", "https://example.org/x") == ["Tech"]


def test_domain_tag_uses_hostname_only():
    assert domain_tag("https://blog.example.com/arxiv.org") is None
    assert domain_tag("https://www.theverge.com/2025/1/1/story") == "Tech"
    assert domain_tag(None) is None
    assert domain_tag("not a url") is None


def test_no_duplicate_tags():
    tags = detect_tags("Microsoft GitHub Copilot on Azure")
    assert len(tags) == len(set(tags))


def test_company_tag_lookup():
    assert is_company_tag("Nvidia")
    assert not is_company_tag("AI")
