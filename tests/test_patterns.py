from calltree.patterns import (
    FUNCTION_DEFINITION,
    NESTED_ANGLES,
    NESTED_BRACES,
    NESTED_PARENS,
    QUALIFIED_NAME_RE,
    extract_calls,
    match_initializer_list,
)


def test_balanced_parens_nest():
    assert NESTED_PARENS.match("f(a(b)c)d", 1) == 8


def test_balanced_requires_opening_delimiter():
    assert NESTED_PARENS.match("x(", 0) is None


def test_unbalanced_span_does_not_match():
    assert NESTED_PARENS.match("(a(b)", 0) is None


def test_balanced_search_finds_maximal_span():
    assert NESTED_BRACES.search("x { a { b } } y") == (2, 13)


def test_angles_stop_at_statement_boundary():
    assert NESTED_ANGLES.match("<a; b>", 0) is None
    assert NESTED_ANGLES.match("<vector<int>>", 0) == 13


def test_qualified_name():
    assert QUALIFIED_NAME_RE.fullmatch("::ns::Foo::bar")
    assert QUALIFIED_NAME_RE.fullmatch("bar")
    assert QUALIFIED_NAME_RE.fullmatch("a::") is None


def test_definition_spanning_lines():
    text = (
        "static int ns::Foo::bar(int x,\n"
        "                        int y) {\n"
        "  return baz(x) + qux(y);\n"
        "}\n"
    )
    m = FUNCTION_DEFINITION.search(text)
    assert m is not None
    assert m.name == "ns::Foo::bar"
    assert m.start == 0
    assert text[m.end - 1] == "}"
    assert extract_calls(text[m.name_end:m.end]) == ["baz", "qux"]


def test_declaration_is_not_a_definition():
    assert FUNCTION_DEFINITION.search("void foo(int x);\n") is None


def test_constructor_with_initializer_list():
    text = "Foo::Foo(int x) : a_(x), b_(make(x)) {\n  init();\n}\n"
    m = FUNCTION_DEFINITION.search(text)
    assert m.name == "Foo::Foo"
    assert "init" in extract_calls(text[m.name_end:m.end])


def test_initializer_list_alone():
    text = " : a_(x), b_(y) {"
    end = match_initializer_list(text, 0)
    assert text[end:].strip() == "{"
    assert match_initializer_list("::bar()", 0) is None


def test_const_member_function():
    m = FUNCTION_DEFINITION.search("int Foo::size() const { return n_; }\n")
    assert m.name == "Foo::size"


def test_several_definitions_in_one_text():
    text = "int a() { return b(); }\nint c() { return d(); }\n"
    assert [m.name for m in FUNCTION_DEFINITION.finditer(text)] == ["a", "c"]


def test_nested_calls_are_all_found():
    assert extract_calls("f(g(h(x)))") == ["f", "g", "h"]
    assert set(extract_calls("f(g(h(x)))")) == {"f", "g", "h"}


def test_sibling_and_member_calls():
    assert extract_calls("a(1); obj.b(2); ptr->c(d(3));") == ["a", "b", "c", "d"]


def test_template_call_keeps_name_and_arguments():
    assert extract_calls("auto p = std::make_shared<Foo>(bar(1));") == ["std::make_shared", "bar"]


def test_comparison_is_not_a_template_call():
    assert extract_calls("if (a<b) return c(x) > 0;") == ["if", "c"]


def test_unbalanced_call_still_scans_rest():
    assert extract_calls("f(g(x)") == ["f", "g"]
