"""CSS styles for the Conversation Recall TUI."""

APP_CSS = """
Screen {
    layout: horizontal;
}

#left-container {
    width: 55%;
    height: 100%;
}

#search-input {
    height: 3;
    border: solid $warning;
    padding: 0 1;
}

#results-container {
    height: 1fr;
    border: solid $primary;
}

#results-header {
    height: auto;
    background: $surface;
    padding: 0 1;
    text-style: bold;
    color: $primary;
}

#results-list {
    height: 1fr;
}

#detail-container {
    width: 45%;
    height: 100%;
    border: solid $secondary;
    padding: 1;
}

#detail-container:focus-within {
    border: solid $success;
}

ResultItem {
    height: 1;
    padding: 0 1;
}

ResultItem:hover {
    background: $surface-lighten-1;
}

ListView:focus > ListItem.-active {
    background: $primary-darken-1;
}

ListView.-has-focus > ListItem.-active {
    background: $primary;
}

Footer {
    background: $surface;
}
"""
