"""Tests for KEY=VALUE env file reading and writing."""

from devprism.lib.envfile import format_env_file, parse_env_file, read_env_file, write_env_file


class TestFormatEnvFile:
    """Tests for env file formatting."""

    def test_one_line_per_entry_with_trailing_newline(self):
        content = format_env_file({"A": "1", "B": "two"})
        assert content == "A=1\nB=two\n"

    def test_header_lines_are_comments(self):
        content = format_env_file({"A": "1"}, header=["Generated"])
        assert content == "# Generated\nA=1\n"

    def test_empty_mapping_gives_empty_content(self):
        assert format_env_file({}) == ""

    def test_values_are_not_quoted(self):
        """Values are written verbatim."""
        assert format_env_file({"URL": "http://x:1/a b"}) == "URL=http://x:1/a b\n"


class TestParseEnvFile:
    """Tests for env file parsing."""

    def test_splits_on_first_equals(self):
        """Only the first '=' separates key and value."""
        assert parse_env_file("URL=postgres://h/db?opt=1\n") == {"URL": "postgres://h/db?opt=1"}

    def test_skips_comments_blank_and_malformed_lines(self):
        content = "# comment\n\nNOT_A_PAIR\nA=1\n"
        assert parse_env_file(content) == {"A": "1"}

    def test_empty_value(self):
        assert parse_env_file("EMPTY=\n") == {"EMPTY": ""}

    def test_value_whitespace_is_kept(self):
        """Only the key is stripped; the value stays exactly as written."""
        assert parse_env_file("  GREETING =  hello world  \n") == {"GREETING": "  hello world  "}

    def test_indented_comment_is_skipped(self):
        assert parse_env_file("   # note=1\nA=1\n") == {"A": "1"}


class TestEnvFileIO:
    """Tests for writing to and reading from disk."""

    def test_write_creates_parent_directories(self, tmp_path):
        path = tmp_path / "nested" / "dir" / ".env.session"

        returned = write_env_file(path, {"SESSION_ID": "001"})

        assert returned == path
        assert path.read_text() == "SESSION_ID=001\n"

    def test_written_file_reads_back(self, tmp_path):
        path = tmp_path / ".env.session"
        env = {"SESSION_ID": "001", "APP_PORT": "51000"}

        write_env_file(path, env, header=["Auto-generated"])

        assert read_env_file(path) == env

    def test_padded_values_read_back_unchanged(self, tmp_path):
        path = tmp_path / ".env.session"
        env = {"PADDED": " a b ", "TRAILING": "x   "}

        write_env_file(path, env)

        assert read_env_file(path) == env
