import pytest

from modhost.scripts.signals import (
    SignalSyntaxError, looksLikeSignal, parseArguments, parseSignal, parseValue, signalPrefix, stripSignals,
)


def test_parse_basic_signal():
    signal = parseSignal("$$$tok$$$plug$$$folder.create(name=Test, parent='a b')\n")

    assert signal.token == "tok"
    assert signal.pluginId == "plug"
    assert signal.method == "folder.create"
    assert signal.namespace == "folder" and signal.methodName == "create"
    assert signal.args == {"name": "Test", "parent": "a b"}


def test_parse_without_arguments():
    assert parseSignal("$$$t$$$p$$$app.relaunch").args == {}
    assert parseSignal("$$$t$$$p$$$app.relaunch()").args == {}


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("'quoted'", "quoted"),
        ('"it\\"s"', 'it"s'),
        ("42", 42),
        ("-3", -3),
        ("2.5", 2.5),
        ("1e3", 1000.0),
        ("True", True),
        ("false", False),
        ("None", None),
        ("null", None),
        ("plain text", "plain text"),
        ("'42'", "42"),
    ],
)
def test_parseValue(raw, expected):
    assert parseValue(raw) == expected


def test_options_groups_and_markers():
    signal = parseSignal("$$$t$$$p$$$window.set_size(width=800)((options))(height=600)")
    assert signal.args == {"width": 800, "height": 600}

    assert parseArguments("((a=1)(b='x, y'))") == {"a": 1, "b": "x, y"}
    assert parseArguments("(options)") == {}


def test_commas_inside_quotes_and_nested_parens():
    signal = parseSignal("$$$t$$$p$$$notification.show(title='Hi, there', body=\"(1, 2)\")")
    assert signal.args == {"title": "Hi, there", "body": "(1, 2)"}


@pytest.mark.parametrize(
    "line",
    [
        "$$$t$$$p$$$",
        "$$$$$$p$$$folder.create()",
        "$$$t$$$p$$$folder(name=x)",
        "$$$t$$$p$$$folder.create(name=x",
        "$$$t$$$p$$$folder.create(name=x) trailing",
        "no marker",
    ],
)
def test_syntax_errors(line):
    with pytest.raises(SignalSyntaxError):
        parseSignal(line)


def test_looksLikeSignal_and_strip():
    assert looksLikeSignal(signalPrefix("t", "p") + "folder.create()")
    assert looksLikeSignal("  $$$bad$$$p$$$garbage\n")
    assert not looksLikeSignal("price: $$$ 5")

    text = "line one\n$$$t$$$p$$$folder.create(name=x)\nline two\n$$$old$$$p$$$nope\n"
    assert stripSignals(text) == "line one\nline two\n"
    assert stripSignals("") == ""
