PLUGIN_MANIFEST = {
    "name": "github_commit_graph",
    "display_name": "GitHub Commit Graph",
    "description": "Flex your coding frequency.",
    "version": "1",
    "module": "plugins.github_commit_graph.plugin:GithubCommitGraphPlugin",
    # - http: GitHub GraphQL API
    # - credentials: personal access token resolved by the host
    "capabilities": ["http", "credentials"],
    "required_credentials": [{"service": "github_commit_graph", "key": "token"}],
    "form_fields": [
        {"keyname": "username", "field_type": "string", "name": "GitHub username"},
    ],
}
