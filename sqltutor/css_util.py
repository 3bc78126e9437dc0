"""CSSユーティリティモジュール.

チュートリアル画面のスタイルとページ共通のスクリプトを定義します。
"""

custom_css = """
.main_Header {
    text-align: center;
}

.sub_Header {
    text-align: center;
    color: var(--body-text-color-subdued);
}

.input-label {
    font-weight: 600;
}

#lesson-text {
    line-height: 1.6;
}

#lesson-text pre {
    padding: 0.75rem;
    border-radius: 6px;
    background: var(--background-fill-secondary);
    overflow-x: auto;
}

.results-table {
    width: 100%;
    border-collapse: collapse;
    font-size: 0.9rem;
}

.results-table th,
.results-table td {
    padding: 0.4rem 0.6rem;
    border: 1px solid var(--border-color-primary);
    text-align: left;
}

.results-table th {
    background: var(--background-fill-secondary);
}

.no-results {
    color: var(--body-text-color-subdued);
    font-style: italic;
}

.preview-note {
    font-size: 0.7rem;
    color: var(--body-text-color-subdued);
    margin-top: 0.5rem;
    font-style: italic;
}

.query-info {
    font-size: 0.85rem;
    color: var(--color-accent);
}

.query-error {
    color: var(--error-text-color);
    font-weight: 600;
}
"""

# SQL入力欄でCtrl+Enterを押すと実行ボタンをクリックする
shortcut_head = """
<script>
document.addEventListener("keydown", (e) => {
    if (!(e.ctrlKey && e.key === "Enter")) {
        return;
    }
    const input = document.querySelector("#sql-input textarea");
    if (input && document.activeElement === input) {
        e.preventDefault();
        const runButton = document.getElementById("run-query");
        if (runButton) {
            runButton.click();
        }
    }
});
</script>
"""
