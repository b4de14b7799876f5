from pathlib import Path

import pytest

CHART_YAML = """\
apiVersion: v2
name: web
version: 1.0.0
description: Demo web chart
maintainers:
  - name: platform
"""

VALUES_YAML = """\
replicaCount: 1
image:
  repository: nginx
  tag: "1.25"
"""

DEPLOYMENT = """\
apiVersion: apps/v1
kind: Deployment
metadata:
  name: {{ include "web.name" . }}
spec:
  replicas: {{ .Values.replicaCount }}
  template:
    spec:
      containers:
        - name: web
          image: "{{ .Values.image.repository }}:{{ .Values.image.tag }}"
"""

HELPERS = """\
{{/* Chart name, truncated to 63 characters. */}}
{{- define "web.name" -}}
{{ .Chart.Name | trunc 63 }}
{{- end }}
"""

CLEAN_CHART = {
    "Chart.yaml": CHART_YAML,
    "values.yaml": VALUES_YAML,
    "templates/deployment.yaml": DEPLOYMENT,
    "templates/_helpers.tpl": HELPERS,
    "templates/NOTES.txt": "Thanks for installing {{ .Release.Name }}.\n",
}


@pytest.fixture
def make_chart(tmp_path):
    """
    Writes a chart under tmp_path. `overrides` replaces (or, with None,
    removes) files of the clean baseline chart.
    """
    def build(overrides=None, name="web") -> Path:
        files = dict(CLEAN_CHART)
        for rel, content in (overrides or {}).items():
            if content is None:
                files.pop(rel, None)
            else:
                files[rel] = content
        root = tmp_path / name
        for rel, content in files.items():
            target = root / rel
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content, encoding="utf-8")
        root.mkdir(parents=True, exist_ok=True)
        return root
    return build
