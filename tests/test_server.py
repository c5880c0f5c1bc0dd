import asyncio

from gitwalk import server


def test_tools_are_registered():
    tools = asyncio.run(server.mcp.list_tools())

    assert {tool.name for tool in tools} == {"git_clone", "git_commit", "git_push"}


def test_commit_tool_accepts_optional_message():
    tools = {tool.name: tool for tool in asyncio.run(server.mcp.list_tools())}

    schema = tools["git_commit"].inputSchema
    assert "message" in schema["properties"]
    assert "message" not in schema.get("required", [])


def test_tools_read_configuration_at_call_time(environ, origin_repo, tmp_path):
    environ["GIT_REMOTE_URL"] = origin_repo
    environ["GIT_LOCAL_DIRECTORY_BASE"] = str(tmp_path / "work")
    environ["GIT_LOCAL_DIRECTORY_NAME"] = "clone"

    assert server.git_clone()["status"] == "cloned"
    assert server.git_commit()["status"] == "clean"

    (tmp_path / "work" / "clone" / "new.txt").write_text("new", encoding="utf-8")
    assert server.git_commit(message="Tool commit")["message"] == "Tool commit"
    assert server.git_push()["status"] == "pushed"
