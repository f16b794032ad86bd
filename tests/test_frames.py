import pytest

from fakes import FakeFrame, FakePage
from gas_bridge.frames import describe_frame_tree, frame_by_path, frame_containing


def _tree():
    data = FakeFrame("", "https://n-1.googleusercontent.com/inner", selectors={"#dashboardTableBody"})
    user = FakeFrame("userHtmlFrame", "https://n-1.googleusercontent.com/userCodeAppPanel", children=[data])
    decoy = FakeFrame("userHtmlFrame", "https://decoy.example.com/")
    sandbox = FakeFrame("sandboxFrame", "https://n-1.googleusercontent.com/", children=[user, decoy])
    other = FakeFrame("ads", "https://ads.example.com/", selectors={"#dashboardTableBody"})
    main = FakeFrame("", "https://script.google.com/exec", children=[sandbox, other])
    return main, sandbox, user, decoy, data, other


def test_frame_by_path_returns_first_matching_child():
    main, _sandbox, user, _decoy, _data, _other = _tree()
    assert frame_by_path(FakePage(main), ["sandboxFrame", "userHtmlFrame"]) is user


def test_frame_by_path_returns_none_on_missing_segment():
    main, *_ = _tree()
    page = FakePage(main)
    assert frame_by_path(page, ["sandboxFrame", "missing"]) is None
    assert frame_by_path(page, ["userHtmlFrame"]) is None


def test_frame_by_path_empty_path_is_main_frame():
    main, *_ = _tree()
    assert frame_by_path(FakePage(main), []) is main


@pytest.mark.asyncio
async def test_frame_containing_searches_pre_order_and_disposes_handle():
    main, _sandbox, _user, _decoy, data, other = _tree()

    found = await frame_containing(main, "#dashboardTableBody")

    assert found is data
    assert [handle.disposed for handle in data.handles] == [True]
    assert other.handles == []


@pytest.mark.asyncio
async def test_frame_containing_checks_root_first():
    root = FakeFrame("root", selectors={"#x"}, children=[FakeFrame("child", selectors={"#x"})])
    assert await frame_containing(root, "#x") is root


@pytest.mark.asyncio
async def test_frame_containing_returns_none_when_absent():
    main, *_ = _tree()
    assert await frame_containing(main, "#nothing") is None


def test_describe_frame_tree():
    leaf = FakeFrame("", "about:blank")
    root = FakeFrame("top", "https://a.example.com/", children=[leaf])

    assert describe_frame_tree(root) == {
        "name": "top",
        "url": "https://a.example.com/",
        "children": [{"name": "(no-name)", "url": "about:blank", "children": []}],
    }
