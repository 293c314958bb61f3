"""The command procedure catalog.

Each entry maps a procedure name to its binary, argument rule, output
hint, and owning group.  Entries are listed in the order they are
advertised.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from toolgate.execution.models import OutputFormat as F
from toolgate.groups.registry import ToolGroup as G
from toolgate.tools.base import (
    Flag,
    Opt,
    Pos,
    ProcedureSpec,
    argv,
    boolean,
    integer,
    schema,
    string,
    strings,
)

if TYPE_CHECKING:
    from collections.abc import Mapping

_PATH = string("Target path (file or directory)")
_REPO_DIR = string("Repository working directory")
_NAMESPACE = string("Kubernetes namespace")
_GH_REPO = string("Repository in owner/repo format")
_GL_PROJECT = string("Project path (group/project)")
_LIMIT = integer("Maximum results", minimum=1)


def _cmd(
    name: str,
    group: G,
    description: str,
    parameters: dict[str, Any],
    binary: str,
    build_args: Any,
    output_format: F = F.AUTO,
    **kwargs: Any,
) -> ProcedureSpec:
    return ProcedureSpec(
        name=name,
        group=group,
        description=description,
        parameters=parameters,
        binary=binary,
        build_args=build_args,
        output_format=output_format,
        **kwargs,
    )


# ── Custom argument rules ────────────────────────────────────────


def _file_read_args(params: Mapping[str, Any]) -> list[str]:
    offset = params.get("offset")
    limit = params.get("limit")
    if offset is None and limit is None:
        return ["-n", "p", "--", params["path"]]
    start = max(int(offset or 1), 1)
    end = f"{start + int(limit) - 1}" if limit is not None else "$"
    return ["-n", f"{start},{end}p", "--", params["path"]]


def _git_diff_args(params: Mapping[str, Any]) -> list[str]:
    args = ["diff", "--no-color", "--no-ext-diff"]
    if params.get("staged"):
        args.append("--staged")
    if params.get("commit"):
        args.append(params["commit"])
    if params.get("file"):
        args.extend(["--", params["file"]])
    return args


def _kubectl_get_args(params: Mapping[str, Any]) -> list[str]:
    args = ["get", params["resource"]]
    if params.get("name"):
        args.append(params["name"])
    if params.get("all_namespaces"):
        args.append("--all-namespaces")
    elif params.get("namespace"):
        args.extend(["--namespace", params["namespace"]])
    if params.get("selector"):
        args.extend(["--selector", params["selector"]])
    args.extend(["--output", "json"])
    return args


def _grex_args(params: Mapping[str, Any]) -> list[str]:
    args = [] if params.get("anchors", True) else ["--no-anchors"]
    return [*args, "--", *params["input"]]


COMMANDS: tuple[ProcedureSpec, ...] = (
    # ── filesystem ───────────────────────────────────────────────
    _cmd(
        "fs_list",
        G.FILESYSTEM,
        "List a directory with eza (one entry per line, optional long/tree view).",
        schema(
            path=_PATH,
            all=boolean("Show hidden files"),
            long=boolean("Long format with details"),
            tree=boolean("Tree view"),
            level=integer("Tree depth level", minimum=1),
        ),
        "eza",
        argv(
            "--color=never",
            Flag("all", "--all"),
            Flag("long", "--long"),
            Flag("tree", "--tree"),
            Opt("level", "--level", joined=True),
            Pos("path"),
        ),
        F.LISTING,
        read_only=True,
    ),
    _cmd(
        "fs_find",
        G.FILESYSTEM,
        "Find files by regex pattern with fd.",
        schema(
            pattern=string("Search pattern (regex)"),
            path=_PATH,
            extension=string("File extension filter"),
            file_type=string("f(ile), d(irectory), l(ink), x(executable)", enum=["f", "d", "l", "x"]),
            max_depth=integer("Maximum search depth", minimum=1),
            hidden=boolean("Include hidden files"),
        ),
        "fd",
        argv(
            "--color=never",
            Opt("extension", "--extension"),
            Opt("file_type", "--type"),
            Opt("max_depth", "--max-depth"),
            Flag("hidden", "--hidden"),
            Pos("pattern", default="."),
            Pos("path"),
        ),
        F.PATHS,
        read_only=True,
    ),
    _cmd(
        "fs_dir_size",
        G.FILESYSTEM,
        "Show the largest entries under a directory with dust.",
        schema(
            path=_PATH,
            depth=integer("Maximum depth", minimum=1),
            count=integer("Number of entries to show", minimum=1),
        ),
        "dust",
        argv(
            "--no-colors",
            "--no-percent-bars",
            Opt("depth", "--depth"),
            Opt("count", "--number-of-lines"),
            Pos("path"),
        ),
        F.DISK_USAGE,
        read_only=True,
    ),
    _cmd(
        "fs_file_type",
        G.FILESYSTEM,
        "Detect file types and MIME types with file.",
        schema("paths", paths=strings("Files to inspect")),
        "file",
        argv("--mime-type", "--", Pos("paths")),
        F.FILE_TYPE,
        read_only=True,
    ),
    # ── file_ops ─────────────────────────────────────────────────
    _cmd(
        "file_read",
        G.FILE_OPS,
        "Read a file, optionally a line range (1-indexed offset and line count).",
        schema(
            "path",
            path=string("Absolute file path"),
            offset=integer("Starting line (1-indexed)", minimum=1),
            limit=integer("Number of lines to read", minimum=1),
        ),
        "sed",
        _file_read_args,
        F.PLAIN,
        read_only=True,
    ),
    _cmd(
        "file_write",
        G.FILE_OPS,
        "Write content to a file, replacing it.",
        schema("path", "content", path=string("Absolute file path"), content=string("Content to write")),
        "dd",
        argv("status=none", Opt("path", "of", joined=True)),
        F.PLAIN,
        stdin_param="content",
    ),
    _cmd(
        "file_append",
        G.FILE_OPS,
        "Append content to the end of a file.",
        schema("path", "content", path=string("Absolute file path"), content=string("Content to append")),
        "dd",
        argv("status=none", "oflag=append", "conv=notrunc", Opt("path", "of", joined=True)),
        F.PLAIN,
        stdin_param="content",
    ),
    _cmd(
        "file_patch",
        G.FILE_OPS,
        "Apply a unified diff patch to a file.",
        schema("path", "patch", path=string("File to patch"), patch=string("Unified diff patch content")),
        "patch",
        argv("--forward", "--batch", "--no-backup-if-mismatch", Pos("path")),
        F.PLAIN,
        stdin_param="patch",
    ),
    # ── search ───────────────────────────────────────────────────
    _cmd(
        "search_content",
        G.SEARCH,
        "Search file contents with ripgrep; returns one JSON event per match.",
        schema(
            "pattern",
            pattern=string("Regex pattern"),
            path=_PATH,
            ignore_case=boolean("Case-insensitive"),
            file_type=string("File type (e.g. 'rust', 'py')"),
            context=integer("Context lines", minimum=0),
        ),
        "rg",
        argv(
            "--json",
            Flag("ignore_case", "--ignore-case"),
            Opt("file_type", "--type"),
            Opt("context", "--context"),
            "--regexp",
            Pos("pattern"),
            Pos("path"),
        ),
        F.JSONL,
        read_only=True,
    ),
    _cmd(
        "search_fuzzy",
        G.SEARCH,
        "Fuzzy-filter newline-separated input with fzf, best match first.",
        schema(
            "pattern",
            "input",
            pattern=string("Query"),
            input=string("Input to filter (newline-separated)"),
            exact=boolean("Exact match (no fuzzy)"),
        ),
        "fzf",
        argv(Flag("exact", "--exact"), Opt("pattern", "--filter")),
        F.LINES,
        stdin_param="input",
        read_only=True,
    ),
    _cmd(
        "search_ast",
        G.SEARCH,
        "Structural code search with ast-grep.",
        schema(
            "pattern",
            pattern=string("AST pattern"),
            lang=string("Language"),
            path=_PATH,
        ),
        "ast-grep",
        argv("run", "--json=stream", Opt("pattern", "--pattern"), Opt("lang", "--lang"), Pos("path")),
        F.JSONL,
        read_only=True,
    ),
    # ── text ─────────────────────────────────────────────────────
    _cmd(
        "text_jq",
        G.TEXT,
        "Run a jq filter over JSON input; one compact result per line.",
        schema("input", "filter", input=string("JSON input"), filter=string("jq filter")),
        "jq",
        argv("--compact-output", Pos("filter")),
        F.JSONL,
        stdin_param="input",
        read_only=True,
    ),
    _cmd(
        "text_yq",
        G.TEXT,
        "Query YAML with yq; results are returned as JSON.",
        schema("input", "filter", input=string("YAML input"), filter=string("yq expression")),
        "yq",
        argv("--output-format=json", "--indent=0", Pos("filter")),
        F.JSONL,
        stdin_param="input",
        read_only=True,
    ),
    _cmd(
        "text_htmlq",
        G.TEXT,
        "Extract parts of HTML by CSS selector with htmlq.",
        schema(
            "input",
            "css_selector",
            input=string("HTML input"),
            css_selector=string("CSS selector"),
            text=boolean("Extract text only"),
            attribute=string("Extract attribute"),
        ),
        "htmlq",
        argv(Flag("text", "--text"), Opt("attribute", "--attribute"), Pos("css_selector")),
        F.LINES,
        stdin_param="input",
        read_only=True,
    ),
    _cmd(
        "text_csv_select",
        G.TEXT,
        "Select CSV columns with xsv.",
        schema("input", "columns", input=string("CSV input"), columns=string("Columns (e.g. 'name,2-4')")),
        "xsv",
        argv("select", Pos("columns")),
        F.CSV,
        stdin_param="input",
        read_only=True,
    ),
    _cmd(
        "text_replace",
        G.TEXT,
        "Find and replace in text with sd.",
        schema(
            "input",
            "find",
            "replace",
            input=string("Input text"),
            find=string("Pattern to find"),
            replace=string("Replacement"),
            fixed=boolean("Fixed string (not regex)"),
        ),
        "sd",
        argv(Flag("fixed", "--fixed-strings"), "--", Pos("find"), Pos("replace")),
        F.PLAIN,
        stdin_param="input",
        read_only=True,
    ),
    # ── git ──────────────────────────────────────────────────────
    _cmd(
        "git_status",
        G.GIT,
        "Working tree status in porcelain format.",
        schema(path=_REPO_DIR),
        "git",
        argv("status", "--porcelain=v1", "--branch"),
        F.LINES,
        cwd_param="path",
        read_only=True,
    ),
    _cmd(
        "git_diff",
        G.GIT,
        "Show changes as a parsed unified diff.",
        schema(
            path=_REPO_DIR,
            staged=boolean("Show staged changes"),
            commit=string("Compare with specific commit"),
            file=string("Specific file to diff"),
        ),
        "git",
        _git_diff_args,
        F.UNIFIED_DIFF,
        cwd_param="path",
        read_only=True,
    ),
    _cmd(
        "git_log",
        G.GIT,
        "Recent commits, one per line.",
        schema(path=_REPO_DIR, count=integer("Number of commits to show", minimum=1)),
        "git",
        argv("log", "--oneline", "--no-color", Opt("count", "--max-count", default=20)),
        F.LINES,
        cwd_param="path",
        read_only=True,
    ),
    _cmd(
        "git_add",
        G.GIT,
        "Stage files.",
        schema("files", path=_REPO_DIR, files=strings("Files to stage ('.' for all)")),
        "git",
        argv("add", "--", Pos("files")),
        F.PLAIN,
        cwd_param="path",
    ),
    _cmd(
        "git_commit",
        G.GIT,
        "Record a commit.",
        schema(
            "message",
            path=_REPO_DIR,
            message=string("Commit message"),
            all=boolean("Stage all modified files"),
        ),
        "git",
        argv("commit", Flag("all", "--all"), Opt("message", "--message")),
        F.PLAIN,
        cwd_param="path",
    ),
    _cmd(
        "git_branch",
        G.GIT,
        "List local branches.",
        schema(path=_REPO_DIR),
        "git",
        argv("branch", "--list", "--format=%(refname:short)"),
        F.LINES,
        cwd_param="path",
        read_only=True,
    ),
    # ── github ───────────────────────────────────────────────────
    _cmd(
        "gh_repo_view",
        G.GITHUB,
        "Repository metadata via gh.",
        schema(repo=_GH_REPO),
        "gh",
        argv("repo", "view", Pos("repo"), "--json", "name,owner,description,url,defaultBranchRef,isPrivate"),
        F.JSON,
        cache_ttl=300,
        read_only=True,
    ),
    _cmd(
        "gh_issue_list",
        G.GITHUB,
        "List issues via gh.",
        schema(
            repo=_GH_REPO,
            state=string("State filter", enum=["open", "closed", "all"]),
            limit=_LIMIT,
        ),
        "gh",
        argv(
            "issue", "list",
            Opt("repo", "--repo"),
            Opt("state", "--state"),
            Opt("limit", "--limit"),
            "--json", "number,title,state,author,labels,url",
        ),
        F.JSON,
        cache_ttl=60,
        read_only=True,
    ),
    _cmd(
        "gh_pr_list",
        G.GITHUB,
        "List pull requests via gh.",
        schema(
            repo=_GH_REPO,
            state=string("State filter", enum=["open", "closed", "merged", "all"]),
            limit=_LIMIT,
        ),
        "gh",
        argv(
            "pr", "list",
            Opt("repo", "--repo"),
            Opt("state", "--state"),
            Opt("limit", "--limit"),
            "--json", "number,title,state,author,headRefName,url",
        ),
        F.JSON,
        cache_ttl=60,
        read_only=True,
    ),
    _cmd(
        "gh_run_list",
        G.GITHUB,
        "Recent workflow runs via gh.",
        schema(repo=_GH_REPO, workflow=string("Workflow ID or filename"), limit=_LIMIT),
        "gh",
        argv(
            "run", "list",
            Opt("repo", "--repo"),
            Opt("workflow", "--workflow"),
            Opt("limit", "--limit"),
            "--json", "databaseId,name,status,conclusion,headBranch,url",
        ),
        F.JSON,
        read_only=True,
    ),
    _cmd(
        "gh_api",
        G.GITHUB,
        "Call the GitHub REST API via gh.",
        schema(
            "endpoint",
            endpoint=string("API endpoint (e.g. repos/{owner}/{repo})"),
            method=string("HTTP method", enum=["GET", "POST", "PATCH", "PUT", "DELETE"]),
        ),
        "gh",
        argv("api", Opt("method", "--method"), Pos("endpoint")),
        F.JSON,
    ),
    # ── gitlab ───────────────────────────────────────────────────
    _cmd(
        "glab_issue_list",
        G.GITLAB,
        "List issues via glab.",
        schema(project=_GL_PROJECT, closed=boolean("Closed issues only"), all=boolean("All states")),
        "glab",
        argv("issue", "list", Opt("project", "--repo"), Flag("closed", "--closed"), Flag("all", "--all"), "--output", "json"),
        F.JSON,
        cache_ttl=60,
        read_only=True,
    ),
    _cmd(
        "glab_mr_list",
        G.GITLAB,
        "List merge requests via glab.",
        schema(project=_GL_PROJECT, closed=boolean("Closed MRs only"), merged=boolean("Merged MRs only")),
        "glab",
        argv("mr", "list", Opt("project", "--repo"), Flag("closed", "--closed"), Flag("merged", "--merged"), "--output", "json"),
        F.JSON,
        cache_ttl=60,
        read_only=True,
    ),
    _cmd(
        "glab_pipeline_list",
        G.GITLAB,
        "List CI pipelines via glab.",
        schema(project=_GL_PROJECT),
        "glab",
        argv("ci", "list", Opt("project", "--repo"), "--output", "json"),
        F.JSON,
        read_only=True,
    ),
    # ── kubernetes ───────────────────────────────────────────────
    _cmd(
        "kubectl_get",
        G.KUBERNETES,
        "Get Kubernetes resources as JSON.",
        schema(
            "resource",
            resource=string("Resource type: pods, deployments, services, ..."),
            name=string("Resource name"),
            namespace=_NAMESPACE,
            all_namespaces=boolean("All namespaces"),
            selector=string("Label selector"),
        ),
        "kubectl",
        _kubectl_get_args,
        F.JSON,
        read_only=True,
    ),
    _cmd(
        "kubectl_describe",
        G.KUBERNETES,
        "Describe a Kubernetes resource.",
        schema("resource", resource=string("Resource type"), name=string("Resource name"), namespace=_NAMESPACE),
        "kubectl",
        argv("describe", Pos("resource"), Pos("name"), Opt("namespace", "--namespace")),
        F.PLAIN,
        read_only=True,
    ),
    _cmd(
        "kubectl_logs",
        G.KUBERNETES,
        "Fetch pod logs.",
        schema(
            "pod",
            pod=string("Pod name"),
            container=string("Container name"),
            namespace=_NAMESPACE,
            tail=integer("Number of lines", minimum=1),
            since=string("Show since duration (e.g. '1h')"),
        ),
        "kubectl",
        argv(
            "logs",
            Pos("pod"),
            Opt("container", "--container"),
            Opt("namespace", "--namespace"),
            Opt("tail", "--tail"),
            Opt("since", "--since"),
        ),
        F.LINES,
        read_only=True,
    ),
    _cmd(
        "kubectl_apply",
        G.KUBERNETES,
        "Apply a YAML/JSON manifest.",
        schema(
            "manifest",
            manifest=string("Manifest content"),
            namespace=_NAMESPACE,
            dry_run=string("Dry run mode", enum=["none", "client", "server"]),
        ),
        "kubectl",
        argv("apply", "--filename", "-", Opt("namespace", "--namespace"), Opt("dry_run", "--dry-run", joined=True)),
        F.PLAIN,
        stdin_param="manifest",
    ),
    _cmd(
        "helm_list",
        G.KUBERNETES,
        "List Helm releases.",
        schema(namespace=_NAMESPACE, all_namespaces=boolean("All namespaces")),
        "helm",
        argv("list", Opt("namespace", "--namespace"), Flag("all_namespaces", "--all-namespaces"), "--output", "json"),
        F.JSON,
        read_only=True,
    ),
    # ── container ────────────────────────────────────────────────
    _cmd(
        "podman_ps",
        G.CONTAINER,
        "List containers with podman.",
        schema(all=boolean("Include stopped containers")),
        "podman",
        argv("ps", Flag("all", "--all"), "--format", "json"),
        F.JSON,
        read_only=True,
    ),
    _cmd(
        "podman_images",
        G.CONTAINER,
        "List local images with podman.",
        schema(),
        "podman",
        argv("images", "--format", "json"),
        F.JSON,
        read_only=True,
    ),
    _cmd(
        "registry_inspect",
        G.CONTAINER,
        "Inspect a remote image with skopeo without pulling it.",
        schema("image", image=string("Image reference (e.g. docker.io/library/alpine:3)")),
        "skopeo",
        lambda p: ["inspect", f"docker://{p['image']}"],
        F.JSON,
        cache_ttl=600,
        read_only=True,
    ),
    _cmd(
        "image_scan",
        G.CONTAINER,
        "Vulnerability scan of an image with trivy.",
        schema(
            "image",
            image=string("Image reference"),
            severity=string("Severity filter (e.g. HIGH,CRITICAL)"),
        ),
        "trivy",
        argv("image", "--quiet", "--format", "json", Opt("severity", "--severity"), Pos("image")),
        F.JSON,
        timeout=600.0,
        read_only=True,
    ),
    # ── network ──────────────────────────────────────────────────
    _cmd(
        "http_request",
        G.NETWORK,
        "Send an HTTP request with xh; a JSON response body is parsed.",
        schema(
            "url",
            url=string("URL to request"),
            method=string("HTTP method", enum=["GET", "POST", "PUT", "PATCH", "DELETE", "HEAD"]),
            body=string("Request body"),
            bearer=string("Bearer token"),
        ),
        "xh",
        argv("--body", "--pretty=none", Opt("bearer", "--bearer"), Pos("method", default="GET"), Pos("url")),
        F.AUTO,
        stdin_param="body",
    ),
    _cmd(
        "sql_query",
        G.NETWORK,
        "Run a SQL query with usql; rows come back as CSV records.",
        schema("db_url", "query", db_url=string("Database URL (postgres://, mysql://, sqlite:)"), query=string("SQL query")),
        "usql",
        argv("--csv", "--command", Pos("query"), Pos("db_url")),
        F.CSV,
    ),
    _cmd(
        "dns_lookup",
        G.NETWORK,
        "Resolve DNS records with dig.",
        schema(
            "domain",
            domain=string("Domain to query"),
            record_type=string("Record type", enum=["A", "AAAA", "MX", "NS", "TXT", "CNAME"]),
        ),
        "dig",
        argv("+short", Pos("domain"), Pos("record_type", default="A")),
        F.LINES,
        cache_ttl=60,
        read_only=True,
    ),
    # ── system ───────────────────────────────────────────────────
    _cmd(
        "shell_exec",
        G.SYSTEM,
        "Run a shell command.",
        schema(
            "command",
            command=string("Command to execute"),
            working_dir=string("Working directory"),
        ),
        "bash",
        argv("-c", Pos("command")),
        F.AUTO,
        cwd_param="working_dir",
    ),
    _cmd(
        "process_list",
        G.SYSTEM,
        "List processes (pid, user, cpu, memory, command).",
        schema(),
        "ps",
        argv("-eo", "pid,user,%cpu,%mem,args"),
        F.COLUMNS,
        read_only=True,
    ),
    _cmd(
        "benchmark",
        G.SYSTEM,
        "Benchmark a command with hyperfine.",
        schema("command", command=string("Command to benchmark"), warmup=integer("Warmup runs", minimum=0)),
        "hyperfine",
        argv("--style", "none", "--export-json", "/dev/stdout", Opt("warmup", "--warmup"), Pos("command")),
        F.AUTO,
        timeout=600.0,
    ),
    _cmd(
        "code_stats",
        G.SYSTEM,
        "Count lines of code per language with tokei.",
        schema(path=_PATH),
        "tokei",
        argv("--output", "json", Pos("path")),
        F.JSON,
        read_only=True,
    ),
    _cmd(
        "system_info",
        G.SYSTEM,
        "Kernel and machine information.",
        schema(),
        "uname",
        argv("-a"),
        F.PLAIN,
        cache_ttl=3600,
        read_only=True,
    ),
    # ── archive ──────────────────────────────────────────────────
    _cmd(
        "archive_compress",
        G.ARCHIVE,
        "Compress files into an archive with ouch (format from the extension).",
        schema("files", "output", files=strings("Files to compress"), output=string("Output archive path")),
        "ouch",
        argv("compress", "--yes", Pos("files"), Pos("output")),
        F.PLAIN,
    ),
    _cmd(
        "archive_decompress",
        G.ARCHIVE,
        "Extract an archive with ouch.",
        schema("archive", archive=string("Archive file path"), output_dir=string("Output directory")),
        "ouch",
        argv("decompress", "--yes", Opt("output_dir", "--dir"), Pos("archive")),
        F.PLAIN,
    ),
    _cmd(
        "archive_list",
        G.ARCHIVE,
        "List archive contents with ouch.",
        schema("archive", archive=string("Archive file path")),
        "ouch",
        argv("list", Pos("archive")),
        F.LINES,
        read_only=True,
    ),
    # ── reference ────────────────────────────────────────────────
    _cmd(
        "tldr",
        G.REFERENCE,
        "Concise usage examples for a command.",
        schema("cmd", cmd=string("Command name to get help for")),
        "tldr",
        argv("--raw", Pos("cmd")),
        F.PLAIN,
        cache_ttl=86400,
        read_only=True,
    ),
    _cmd(
        "regex_generate",
        G.REFERENCE,
        "Generate a regular expression matching the given examples with grex.",
        schema("input", input=strings("Test strings"), anchors=boolean("Use anchors", default=True)),
        "grex",
        _grex_args,
        F.PLAIN,
        read_only=True,
    ),
    # ── diff ─────────────────────────────────────────────────────
    _cmd(
        "diff_files",
        G.DIFF,
        "Unified diff of two files, parsed into hunks (exit 1 means they differ).",
        schema(
            "file_a",
            "file_b",
            file_a=string("First file path"),
            file_b=string("Second file path"),
            context=integer("Context lines around changes", minimum=0),
        ),
        "diff",
        argv(Opt("context", "--unified", joined=True, default=3), Pos("file_a"), Pos("file_b")),
        F.UNIFIED_DIFF,
        read_only=True,
    ),
    _cmd(
        "diff_structural",
        G.DIFF,
        "Syntax-aware diff of two files with difftastic.",
        schema(
            "file_a",
            "file_b",
            file_a=string("First file path"),
            file_b=string("Second file path"),
        ),
        "difft",
        argv("--color=never", "--display=inline", Pos("file_a"), Pos("file_b")),
        F.PLAIN,
        read_only=True,
    ),
)
