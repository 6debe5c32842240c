from resepi.spam import check_spam


def test_clean_comment_passes():
    res = check_spam("Resepi ini sangat sedap, terima kasih!")
    assert res.is_spam is False
    assert res.reason is None
    assert res.details["link_count"] == 0


def test_too_many_links():
    text = " ".join(f"http://contoh{i}.com" for i in range(4))
    res = check_spam(text)
    assert res.is_spam is True
    assert "Too many links" in res.reason
    assert res.details["link_count"] == 4


def test_three_links_allowed():
    text = "lihat http://a.com http://b.com http://c.com"
    assert check_spam(text).is_spam is False


def test_repeated_characters():
    res = check_spam("sed" + "a" * 11 + "p")
    assert res.is_spam is True
    assert "repeated" in res.reason


def test_nine_repeats_is_fine():
    assert check_spam("sed" + "a" * 9 + "p").is_spam is False


def test_all_caps_long_message():
    res = check_spam("INI RESEPI PALING SEDAP DI DUNIA")
    assert res.is_spam is True
    assert res.details["is_all_caps"] is True


def test_short_caps_message_allowed():
    assert check_spam("SEDAP!").is_spam is False


def test_digits_only_not_shouting():
    assert check_spam("1234567890 1234567890 12345").is_spam is False


def test_spam_words_threshold():
    assert check_spam("casino lottery").is_spam is False
    res = check_spam("casino lottery winner")
    assert res.is_spam is True
    assert res.details["spam_words_found"] == ["casino", "lottery", "winner"]


def test_links_checked_before_caps():
    text = "HTTP://A.COM HTTP://B.COM HTTP://C.COM HTTP://D.COM"
    res = check_spam(text)
    assert "Too many links" in res.reason
