"""
Classification rule table for messaging-captured tasks

Keyword lists and marker labels are tuned for Chinese WeChat captures.
They live here as data so another rule set can be loaded from the config
file without touching the planner.
"""

import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Pattern

CLASS_ACTION = 'action'
CLASS_MATERIAL = 'material'
CLASS_TYPES = (CLASS_ACTION, CLASS_MATERIAL)

DEFAULT_MARKER_LABELS = {
    '待投递': CLASS_ACTION,
    '待阅读': CLASS_MATERIAL,
    '好素材': CLASS_MATERIAL,
}

DEFAULT_ACTION_KEYWORDS = [
    '待投递', '讨论', '开会', '会议', '面试', '参加', '发送', '发给', '提交', '完成',
    '处理', '跟进', '安排', '提醒', '明天', '今天', '下午', '晚上', '早上', '电话', '约',
]

DEFAULT_MATERIAL_KEYWORDS = [
    '待阅读', '好素材', '素材', '待读', '收藏', '链接', '文章', '视频', '抖音', '公众号',
    '转发', '学习', '案例', '资料',
]


def _keyword_pattern(keywords: List[str]) -> Optional[Pattern]:
    words = [w for w in keywords if w]
    if not words:
        return None
    return re.compile('|'.join(re.escape(w) for w in words), re.IGNORECASE)


@dataclass
class ClassificationRules:
    """Marker labels, keyword lists and the tags they resolve to"""
    capture_tag: str = '微信采集'
    action_tag: str = '待行动'
    material_tag: str = '材料'
    marker_labels: Dict[str, str] = field(default_factory=lambda: dict(DEFAULT_MARKER_LABELS))
    marker_max_length: int = 8
    action_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_ACTION_KEYWORDS))
    material_keywords: List[str] = field(default_factory=lambda: list(DEFAULT_MATERIAL_KEYWORDS))
    desc_prefix: str = '微信标记: '

    def __post_init__(self):
        for label, class_type in self.marker_labels.items():
            if class_type not in CLASS_TYPES:
                raise ValueError(f"marker label {label!r} maps to unknown class {class_type!r}")
        if self.action_tag == self.material_tag:
            raise ValueError("action_tag and material_tag must differ")

        self.action_pattern = _keyword_pattern(self.action_keywords)
        self.material_pattern = _keyword_pattern(self.material_keywords)

    @classmethod
    def from_config(cls, config: Optional[Dict[str, Any]]) -> 'ClassificationRules':
        """Build rules from the 'wechat' config section, ignoring unrelated keys"""
        config = config or {}
        known = {
            'capture_tag', 'action_tag', 'material_tag', 'marker_labels',
            'marker_max_length', 'action_keywords', 'material_keywords', 'desc_prefix',
        }
        return cls(**{k: v for k, v in config.items() if k in known and v is not None})

    @property
    def class_tags(self) -> tuple:
        return (self.action_tag, self.material_tag)

    def tag_for(self, class_type: str) -> str:
        return self.action_tag if class_type == CLASS_ACTION else self.material_tag

    def marker_class(self, label: Optional[str]) -> Optional[str]:
        if not label:
            return None
        return self.marker_labels.get(label)
