"""
Binding Tests - Placeholder substitution.
"""

import pytest

from iniweave.binding import BindingEvent
from iniweave.dialect import GLOBAL_SECTION_NAME
from iniweave.document import IniDocument, StyledLine
from iniweave.reader import IniReader


def parse(text):
    return IniReader.parse_text(text)


class TestInternalBinding:

    def test_same_section(self):
        doc = parse("[App]\nName=Example\nVersion=1.0\nFullName=@{Name} v@{Version}\n")
        doc.value_binding.bind()
        assert doc.sections["App"].keys["FullName"].value == "Example v1.0"

    def test_qualified_cross_section(self):
        doc = parse(
            "[MachineSettings]\nProgramFiles=C:\\Program Files\n"
            "[Application]\nInstall=@{MachineSettings|ProgramFiles}\\App\n"
        )
        doc.value_binding.bind()
        assert doc.sections["Application"].keys["Install"].value == "C:\\Program Files\\App"

    def test_bare_name_falls_back_to_document(self):
        doc = parse("[A]\nRoot=/srv\n[B]\nPath=@{Root}/data\n")
        doc.value_binding.bind()
        assert doc.sections["B"].keys["Path"].value == "/srv/data"

    def test_local_section_wins(self):
        doc = parse("[A]\nRoot=/srv\n[B]\nRoot=/opt\nPath=@{Root}/data\n")
        doc.value_binding.bind()
        assert doc.sections["B"].keys["Path"].value == "/opt/data"

    def test_case_insensitive_names(self):
        doc = parse("[A]\nName=x\nRef=@{NAME}\n")
        doc.value_binding.bind()
        assert doc.sections["A"].keys["Ref"].value == "x"

    def test_global_section_keys(self):
        doc = parse("Base=/root\n[A]\nPath=@{Base}/a\nFull=@{" + GLOBAL_SECTION_NAME + "|Base}\n")
        doc.value_binding.bind()
        assert doc.sections["A"].keys.to_dict() == {"Path": "/root/a", "Full": "/root"}

    def test_unresolved_left_verbatim(self):
        doc = parse("[A]\nx=@{missing} and @{Nope|Key}\n")
        assert doc.value_binding.bind() == 0
        assert doc.sections["A"].keys["x"].value == "@{missing} and @{Nope|Key}"

    def test_nested_resolution(self):
        doc = parse("[A]\nC=end\nB=@{C}!\nA=<@{B}>\n")
        doc.value_binding.bind()
        assert doc.sections["A"].keys["A"].value == "<end!>"

    def test_nested_uses_origin_section(self):
        doc = parse("[Src]\nName=src\nLabel=@{Name}\n[Dst]\nName=dst\nOut=@{Src|Label}\n")
        doc.sections["Src"].keys["Label"].value = "@{Name}"
        doc.value_binding.bind(section="Dst")
        assert doc.sections["Dst"].keys["Out"].value == "src"

    def test_cycle_left_verbatim(self):
        doc = parse("[A]\nX=@{Y}\nY=@{X}\nSelf=@{Self}\n")
        doc.value_binding.bind()
        keys = doc.sections["A"].keys
        assert keys["Self"].value == "@{Self}"
        # X cannot resolve through the cycle; Y then sees X unchanged
        assert keys["X"].value == "@{Y}"
        assert keys["Y"].value == "@{X}"

    def test_depth_limit(self):
        lines = ["[A]"] + [f"k{i}=@{{k{i + 1}}}" for i in range(5)] + ["k5=end"]
        doc = parse("\n".join(lines) + "\n")
        binding = doc.value_binding
        binding.max_depth = 3
        binding.bind(section="A")
        assert doc.sections["A"].keys["k0"].value == "@{k1}"
        assert doc.sections["A"].keys["k3"].value == "end"

    def test_comments_untouched(self):
        doc = parse("[A]\nName=x\n;@{Name}\nRef=@{Name} ;@{Name}\n")
        doc.value_binding.bind()
        key = doc.sections["A"].keys["Ref"]
        assert key.value == "x"
        assert key.leading_comment.text == "@{Name}"
        assert key.trailing_comment.text == "@{Name}"

    def test_custom_markers(self):
        doc = parse("[A]\nName=x\nRef=${Name}\n")
        binding = doc.value_binding
        binding.placeholder_start = "${"
        binding.bind()
        assert doc.sections["A"].keys["Ref"].value == "x"

    def test_returns_count(self):
        doc = parse("[A]\nN=1\nR=@{N}@{N}@{zz}\n")
        assert doc.value_binding.bind() == 2


class TestExternalBinding:

    def test_mapping_source(self):
        doc = parse("[User]\nNickname=@{User Alias}\n")
        doc.value_binding.bind({"User Alias": "Johny"})
        assert doc.sections["User"].keys["Nickname"].value == "Johny"

    def test_single_pair(self):
        doc = parse("[User]\nNickname=@{User Alias}\n")
        doc.value_binding.bind(("User Alias", "Johny"))
        assert doc.sections["User"].keys["Nickname"].value == "Johny"

    def test_pairs_first_wins(self):
        doc = parse("[User]\nNickname=@{alias}\n")
        doc.value_binding.bind([("alias", "first"), ("alias", "second")])
        assert doc.sections["User"].keys["Nickname"].value == "first"

    def test_non_text_values_formatted(self):
        doc = parse("[A]\nFlag=@{on}\nCount=@{n}\n")
        doc.value_binding.bind({"on": True, "n": 3})
        assert doc.sections["A"].keys.to_dict() == {"Flag": "true", "Count": "3"}

    def test_external_before_internal(self):
        doc = parse("[A]\nName=internal\nRef=@{Name}\n")
        doc.value_binding.bind({"Name": "external"})
        assert doc.sections["A"].keys["Ref"].value == "external"

    def test_internal_fallback(self):
        doc = parse("[A]\nName=internal\nRef=@{Name} @{Other}\n")
        doc.value_binding.bind({"Other": "ext"})
        assert doc.sections["A"].keys["Ref"].value == "internal ext"

    def test_section_restriction(self):
        doc = parse("[A]\nx=@{v}\n[B]\nx=@{v}\n")
        doc.value_binding.bind({"v": "1"}, section="B")
        assert doc.sections["A"].keys["x"].value == "@{v}"
        assert doc.sections["B"].keys["x"].value == "1"

    def test_unknown_section_binds_nothing(self):
        doc = parse("[A]\nx=@{v}\n")
        assert doc.value_binding.bind({"v": "1"}, section="Nope") == 0
        assert doc.sections["A"].keys["x"].value == "@{v}"

    def test_unresolved_with_external(self):
        doc = parse("[User]\nNickname=@{User Alias}\nOther=@{Unknown}\n")
        doc.value_binding.bind({"User Alias": "Johny"})
        assert doc.sections["User"].keys["Other"].value == "@{Unknown}"


class TestBindingHook:

    def test_hook_sees_every_occurrence(self):
        doc = parse("[A]\nName=x\nRef=@{Name} @{Missing}\n")
        events = []
        doc.value_binding.bind(hook=events.append)

        assert [e.placeholder_name for e in events] == ["Name", "Missing"]
        assert events[0].is_value_found is True
        assert events[0].value == "x"
        assert events[0].key is doc.sections["A"].keys["Ref"]
        assert events[1].is_value_found is False
        assert events[1].value is None

    def test_hook_supplies_value(self):
        doc = parse("[A]\nRef=@{Missing}\n")

        def fill(event: BindingEvent):
            if not event.is_value_found:
                event.value = "filled"

        doc.value_binding.bind(hook=fill)
        assert doc.sections["A"].keys["Ref"].value == "filled"

    def test_hook_removes_placeholder(self):
        doc = parse("[A]\nName=x\nRef=[@{Name}]\n")

        def blank(event):
            event.value = ""

        doc.value_binding.bind(hook=blank)
        assert doc.sections["A"].keys["Ref"].value == "[]"

    def test_hook_keeps_placeholder(self):
        doc = parse("[A]\nName=x\nRef=@{Name}\n")

        def veto(event):
            event.value = None

        assert doc.value_binding.bind(hook=veto) == 0
        assert doc.sections["A"].keys["Ref"].value == "@{Name}"

    def test_hook_transforms(self):
        doc = parse("[A]\nName=x\nRef=@{Name}\n")

        def upper(event):
            if event.value is not None:
                event.value = event.value.upper()

        doc.value_binding.bind(hook=upper)
        assert doc.sections["A"].keys["Ref"].value == "X"

    def test_hook_value_formatted(self):
        doc = parse("[A]\nCount=@{n}\nFlag=@{on}\n")

        def supply(event):
            event.value = 3 if event.placeholder_name == "n" else True

        assert doc.value_binding.bind(hook=supply) == 2
        assert doc.sections["A"].keys.to_dict() == {"Count": "3", "Flag": "true"}


class TestBindingThenWrite:

    def test_formatting_survives(self):
        doc = parse(";top\n[A]\nName=x ;n\n  Ref = @{Name}  ;r\n")
        doc.value_binding.bind()
        text = doc.to_text()
        assert text == ";top\n[A]\nName=x ;n\n  Ref=x  ;r\n"

    def test_api_built_document(self):
        doc = IniDocument()
        section = doc.add_section("A", {"Name": "x", "Ref": "@{Name}"})
        section.leading_comment = StyledLine("c")
        doc.value_binding.bind()
        assert doc.to_text() == ";c\n[A]\nName=x\nRef=x\n"
