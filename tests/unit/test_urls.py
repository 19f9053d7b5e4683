from lawdir.pipeline.urls import absolute_url, same_origin, same_page, slugify


def test_absolute_url_resolves_relative_hrefs():
    assert absolute_url('/lawyers/a/b', 'https://www.justia.com/x') == 'https://www.justia.com/lawyers/a/b'
    assert absolute_url('?page=2', 'https://www.justia.com/x') == 'https://www.justia.com/x?page=2'

def test_absolute_url_rejects_non_http():
    assert absolute_url('mailto:a@b.c', 'https://www.justia.com/') == ''
    assert absolute_url('javascript:void(0)', 'https://www.justia.com/') == ''
    assert absolute_url(None, 'https://www.justia.com/') == ''

def test_same_origin_ignores_www_and_case():
    assert same_origin('https://www.Justia.com/a', 'https://justia.com/b')
    assert not same_origin('https://www.justia.com/a', 'https://cdn.justia.com/b')

def test_same_page_ignores_fragment_and_trailing_slash():
    assert same_page('https://example.com/team/#top', 'https://EXAMPLE.com/team')
    assert not same_page('https://example.com/team?page=2', 'https://example.com/team')

def test_slugify():
    assert slugify(' Personal Injury ') == 'personal-injury'
    assert slugify('Wills, Trusts & Estates') == 'wills-trusts-estates'
    assert slugify(None) == ''
