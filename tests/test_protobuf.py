import pytest
from google.protobuf import descriptor_pb2

from yab.protobuf import (
    FileSource,
    ServiceNotFoundError,
    descriptor_provider_from_bins,
    descriptor_provider_from_set,
)

_FDP = descriptor_pb2.FieldDescriptorProto


def _message(name, fields=(), nested=()):
    msg = descriptor_pb2.DescriptorProto(name=name)
    for number, (field_name, type_name) in enumerate(fields, start=1):
        field = msg.field.add(name=field_name, number=number, label=_FDP.LABEL_OPTIONAL)
        if type_name is None:
            field.type = _FDP.TYPE_INT32
        else:
            field.type = _FDP.TYPE_MESSAGE
            field.type_name = type_name
    msg.nested_type.extend(nested)
    return msg


def _simple_file():
    fd = descriptor_pb2.FileDescriptorProto(name="simple.proto")
    fd.message_type.append(_message("Foo", [("test", None)], nested=[_message("Inner")]))
    service = fd.service.add(name="Bar")
    service.method.add(name="Baz", input_type=".Foo", output_type=".Foo")
    return fd


def _dep_file():
    fd = descriptor_pb2.FileDescriptorProto(name="dep.proto", package="dep")
    fd.message_type.append(_message("Dep", [("x", None)]))
    return fd


def _other_dep_file():
    fd = descriptor_pb2.FileDescriptorProto(name="dep.proto", package="dep")
    fd.message_type.append(_message("Other", [("x", None)]))
    return fd


def _main_file():
    fd = descriptor_pb2.FileDescriptorProto(name="main.proto")
    fd.dependency.append("dep.proto")
    fd.message_type.append(_message("Foo", [("dep", ".dep.Dep")]))
    service = fd.service.add(name="Bar")
    service.method.add(name="Baz", input_type=".Foo", output_type=".Foo")
    return fd


def _write_set(tmp_path, name, *files):
    path = tmp_path / name
    path.write_bytes(descriptor_pb2.FileDescriptorSet(file=list(files)).SerializeToString())
    return str(path)


def test_single_file_finds_service(tmp_path):
    provider = descriptor_provider_from_bins(_write_set(tmp_path, "simple.bin", _simple_file()))
    with provider:
        assert provider.find_service("Bar").full_name == "Bar"


def test_combined_dependencies(tmp_path):
    path = _write_set(tmp_path, "combined.bin", _main_file(), _dep_file())
    provider = descriptor_provider_from_bins(path)
    assert provider.find_service("Bar").full_name == "Bar"


def test_dependency_listed_after_dependent(tmp_path):
    path = _write_set(tmp_path, "combined.bin", _dep_file(), _main_file())
    provider = descriptor_provider_from_bins(path)
    assert sorted(provider.files) == ["dep.proto", "main.proto"]


def test_multiple_files(tmp_path):
    main = _write_set(tmp_path, "main.bin", _main_file())
    dep = _write_set(tmp_path, "dep.bin", _dep_file())
    provider = descriptor_provider_from_bins(main, dep)
    assert provider.find_service("Bar").full_name == "Bar"


def test_missing_service(tmp_path):
    provider = descriptor_provider_from_bins(_write_set(tmp_path, "simple.bin", _simple_file()))
    with pytest.raises(ServiceNotFoundError, match='could not find gRPC service "Bar.Baq"') as info:
        provider.find_service("Bar.Baq")
    assert info.value.available == ["Bar"]


def test_not_a_protoset(tmp_path):
    path = tmp_path / "simple.proto"
    path.write_bytes(b"\x0a\x05ab")
    with pytest.raises(ValueError, match="could not parse contents of protoset file"):
        descriptor_provider_from_bins(str(path))


def test_file_does_not_exist(tmp_path):
    with pytest.raises(ValueError, match="could not load protoset file"):
        descriptor_provider_from_bins(str(tmp_path / "not_existing_simple.proto"))


def test_missing_dependency(tmp_path):
    path = _write_set(tmp_path, "main.bin", _main_file())
    with pytest.raises(ValueError, match='no descriptor found for "dep.proto"'):
        descriptor_provider_from_bins(path)


def test_incomplete_dependency(tmp_path):
    main = _write_set(tmp_path, "main.bin", _main_file())
    other = _write_set(tmp_path, "other.bin", _other_dep_file())
    with pytest.raises(ValueError, match="could not build descriptor"):
        descriptor_provider_from_bins(main, other)


def test_find_message(tmp_path):
    provider = descriptor_provider_from_set(
        descriptor_pb2.FileDescriptorSet(file=[_main_file(), _dep_file()])
    )
    assert provider.find_message("dep.Dep").full_name == "dep.Dep"
    assert provider.find_message("Foo").full_name == "Foo"
    assert provider.find_message("not-to-be-found") is None


def test_find_nested_message():
    provider = descriptor_provider_from_set(descriptor_pb2.FileDescriptorSet(file=[_simple_file()]))
    assert provider.find_message("Foo.Inner").full_name == "Foo.Inner"


def test_empty_source_lists_nothing():
    source = FileSource({})
    with pytest.raises(ServiceNotFoundError) as info:
        source.find_service("Bar")
    assert info.value.available == []
    assert str(info.value) == 'could not find gRPC service "Bar"'


def test_service_not_found_error_message():
    err = ServiceNotFoundError("Svc", ["b.B", "a.A"], example="--method Service/Method")
    text = str(err)
    assert text.startswith('could not find gRPC service "Svc"')
    assert "Example: --method Service/Method" in text
    assert text.index("a.A") < text.index("b.B")