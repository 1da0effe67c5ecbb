from services.sanitize import decode_html_entities, sanitize_object, sanitize_string


def test_strips_script_blocks_and_handlers():
    dirty = '<b onclick="steal()">hi</b><script>alert(1)</script> '
    assert sanitize_string(dirty) == "<b >hi</b>"


def test_strips_javascript_scheme():
    assert sanitize_string('<a href="javascript:alert(1)">x</a>') == '<a href="alert(1)">x</a>'


def test_sanitize_is_idempotent():
    once = sanitize_string("<script>x</script>שלום onload='a()'")
    assert sanitize_string(once) == once


def test_sanitize_object_walks_nested_values():
    data = {"a": [" <script>x</script>ok ", 5], "b": {"c": "JavaScript:void(0)"}, "d": None}
    assert sanitize_object(data) == {"a": ["ok", 5], "b": {"c": "void(0)"}, "d": None}


def test_decode_entities():
    assert decode_html_entities("נדל&quot;ן &amp; השקעות") == 'נדל"ן & השקעות'
    assert decode_html_entities(None) == ""
