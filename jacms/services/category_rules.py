"""Category rules: weighted matching of post content against per-category conditions.

A rule holds a set of conditions and a base ``confidence``. Each condition
that matches contributes ``confidence * weight`` (see ``CONDITION_WEIGHTS``);
the rule's score is the mean over the matched conditions. A rule matches
when at least one condition does. Matched evaluations are logged in
``category_rule_executions``.
"""

import asyncio
import math
import re
import time
from collections import Counter
from datetime import timedelta
from typing import Optional

from sqlalchemy import delete, func, or_, select

from ..models.base import utcnow
from ..models.category import Category
from ..models.category_rule import CategoryRule, CategoryRuleExecution
from ..models.post import Post
from ..utils.logging import get_logger
from .base import BaseService, NotFoundError, ValidationError, db_errors, iso

logger = get_logger("services.category_rules")

CONDITION_WEIGHTS = {
    "keywords": 1.0,
    "title_patterns": 0.8,
    "content_type": 0.6,
    "reading_time": 0.4,
    "word_count": 0.3,
}
WORDS_PER_MINUTE = 200
ANALYSIS_KEYWORD_LIMIT = 20
TOPIC_LIMIT = 5
STATISTICS_WINDOW = 100
SUCCESS_CONFIDENCE = 0.5
RULE_FIELDS = ("name", "category_id", "conditions", "priority", "is_active")

# First match wins, in this order
CONTENT_TYPE_MARKERS = (
    ("tutorial", ("how to", "tutorial", "guide")),
    ("news", ("news", "breaking", "announcement")),
    ("review", ("review", "rating", "opinion")),
    ("analysis", ("analysis", "research", "study")),
    ("interview", ("interview", "q&a", "conversation")),
)

STOPWORDS = frozenset("""
a about above after again against all also am an and any are as at be because been before
being below between both but by can could did do does doing down during each few for from
further had has have having he her here hers herself him himself his how i if in into is it
its itself just me more most my myself no nor not now of off on once only or other our ours
ourselves out over own same she should so some such than that the their theirs them
themselves then there these they this those through to too under until up very was we were
what when where which while who whom why will with would you your yours yourself yourselves
""".split())

POSITIVE_WORDS = frozenset(("good", "great", "excellent", "amazing", "wonderful", "best", "love", "like"))
NEGATIVE_WORDS = frozenset(("bad", "terrible", "awful", "worst", "hate", "dislike", "poor"))
ENGLISH_MARKERS = frozenset(("the", "and", "or", "but", "in", "on", "at", "to", "for"))
INDONESIAN_MARKERS = frozenset(("dan", "atau", "tetapi", "di", "ke", "dari", "untuk", "dengan"))

_TAG_RE = re.compile(r"<[^>]+>")
_WORD_RE = re.compile(r"[^\W_]+(?:['-][^\W_]+)*")


def _plain(text: Optional[str]) -> str:
    return _TAG_RE.sub(" ", text or "")


def extract_keywords(text: Optional[str]) -> list[str]:
    """Distinct lowercase words longer than two letters, stopwords removed, in order of appearance."""
    seen: dict[str, None] = {}
    for word in _WORD_RE.findall(_plain(text).lower()):
        if len(word) > 2 and word not in STOPWORDS:
            seen.setdefault(word, None)
    return list(seen)


def count_words(text: Optional[str]) -> int:
    return len(_plain(text).split())


def detect_content_type(title: str, content: str) -> str:
    text = f"{title} {_plain(content)}".lower()
    for content_type, markers in CONTENT_TYPE_MARKERS:
        if any(marker in text for marker in markers):
            return content_type
    return "article"


def analyze_sentiment(text: Optional[str]) -> str:
    words = _plain(text).lower().split()
    positive = sum(1 for w in words if w in POSITIVE_WORDS)
    negative = sum(1 for w in words if w in NEGATIVE_WORDS)
    if positive > negative:
        return "positive"
    if negative > positive:
        return "negative"
    return "neutral"


def detect_language(text: Optional[str]) -> str:
    words = _plain(text).lower().split()
    english = sum(1 for w in words if w in ENGLISH_MARKERS)
    indonesian = sum(1 for w in words if w in INDONESIAN_MARKERS)
    return "id" if indonesian > english else "en"


def extract_topics(text: Optional[str]) -> list[str]:
    """Most frequent words longer than three letters."""
    words = [w for w in _WORD_RE.findall(_plain(text).lower()) if len(w) > 3 and w not in STOPWORDS]
    return [word for word, _ in Counter(words).most_common(TOPIC_LIMIT)]


def analyze_content(title: str, content: Optional[str]) -> dict:
    word_count = count_words(content)
    return {
        "title": title,
        "title_keywords": extract_keywords(title),
        "content_keywords": extract_keywords(content),
        "content_type": detect_content_type(title, content or ""),
        "reading_time": math.ceil(word_count / WORDS_PER_MINUTE),
        "word_count": word_count,
        "sentiment": analyze_sentiment(content),
        "language": detect_language(content),
        "topics": extract_topics(content),
    }


def _in_range(value: int, bounds: dict) -> bool:
    low = bounds.get("min")
    high = bounds.get("max")
    return (low is None or value >= low) and (high is None or value <= high)


def evaluate_conditions(conditions: dict, analysis: dict) -> dict:
    """Score ``analysis`` against one rule's conditions.

    Keywords match as substrings of the extracted title and content
    keywords; title patterns match as substrings of the raw title.
    """
    base = float(conditions.get("confidence", 0))
    matched: list[str] = []
    details: dict = {}

    keywords = conditions.get("keywords") or []
    if keywords:
        found = analysis["title_keywords"] + analysis["content_keywords"]
        hits = [k for k in keywords if any(k.lower() in word for word in found)]
        if hits and len(hits) >= (conditions.get("minimum_matches") or 1):
            matched.append("keywords")
            details["keyword_matches"] = hits

    patterns = conditions.get("title_patterns") or []
    if patterns:
        title = analysis["title"].lower()
        hits = [p for p in patterns if p.lower() in title]
        if hits:
            matched.append("title_patterns")
            details["pattern_matches"] = hits

    content_types = conditions.get("content_types") or []
    if content_types and analysis["content_type"] in content_types:
        matched.append("content_type")
        details["content_type_match"] = True

    if conditions.get("reading_time") and _in_range(analysis["reading_time"], conditions["reading_time"]):
        matched.append("reading_time")
        details["reading_time_match"] = True

    if conditions.get("word_count") and _in_range(analysis["word_count"], conditions["word_count"]):
        matched.append("word_count")
        details["word_count_match"] = True

    confidence = (
        sum(base * CONDITION_WEIGHTS[name] for name in matched) / len(matched) if matched else 0.0
    )
    return {
        "matched": bool(matched),
        "confidence": round(confidence, 4),
        "matched_conditions": matched,
        "details": details,
    }


class CategoryRulesService(BaseService):

    async def create_rule(self, data: dict, created_by: Optional[str] = None) -> dict:
        with db_errors("create category rule"):
            async with self._db_session_factory() as session:
                await self._check_category(session, data["category_id"])
                rule = CategoryRule(
                    name=data["name"],
                    category_id=data["category_id"],
                    conditions=data["conditions"],
                    priority=data.get("priority") or 0,
                    is_active=True if data.get("is_active") is None else data["is_active"],
                    created_by=created_by,
                )
                session.add(rule)
                await session.commit()
                result = rule_to_dict(rule)

        logger.info("category_rule_created", id=result["id"], category_id=result["category_id"])
        return result

    async def get_rules(self, category_id: Optional[str] = None, active_only: bool = False) -> list[dict]:
        stmt = select(CategoryRule).order_by(CategoryRule.priority.desc(), CategoryRule.created_at.asc())
        if category_id:
            stmt = stmt.where(CategoryRule.category_id == category_id)
        if active_only:
            stmt = stmt.where(CategoryRule.is_active == True)  # noqa: E712

        with db_errors("get category rules"):
            async with self._db_session_factory() as session:
                rules = (await session.execute(stmt)).scalars().all()
                return [rule_to_dict(r) for r in rules]

    async def get_category_rules(self, category_id: str) -> list[dict]:
        """Active rules for one category, highest priority first."""
        return await self.get_rules(category_id=category_id, active_only=True)

    async def get_rule_by_id(self, rule_id: str) -> Optional[dict]:
        with db_errors("get category rule", rule_id=rule_id):
            async with self._db_session_factory() as session:
                rule = await session.get(CategoryRule, rule_id)
                return rule_to_dict(rule) if rule else None

    async def update_rule(self, rule_id: str, data: dict) -> dict:
        with db_errors("update category rule", rule_id=rule_id):
            async with self._db_session_factory() as session:
                rule = await session.get(CategoryRule, rule_id)
                if rule is None:
                    raise NotFoundError("Category rule not found")
                if data.get("category_id"):
                    await self._check_category(session, data["category_id"])
                for key in RULE_FIELDS:
                    if data.get(key) is not None:
                        setattr(rule, key, data[key])
                await session.commit()
                result = rule_to_dict(rule)

        logger.info("category_rule_updated", id=rule_id)
        return result

    async def delete_rule(self, rule_id: str) -> dict:
        with db_errors("delete category rule", rule_id=rule_id):
            async with self._db_session_factory() as session:
                rule = await session.get(CategoryRule, rule_id)
                if rule is None:
                    raise NotFoundError("Category rule not found")
                await session.execute(
                    delete(CategoryRuleExecution).where(CategoryRuleExecution.rule_id == rule_id)
                )
                await session.delete(rule)
                await session.commit()

        logger.info("category_rule_deleted", id=rule_id)
        return {"id": rule_id}

    async def analyze_post_content(self, post_id: str) -> dict:
        with db_errors("analyze post content", post_id=post_id):
            async with self._db_session_factory() as session:
                post = await session.get(Post, post_id)
                if post is None:
                    raise NotFoundError("Post not found")
                analysis = analyze_content(post.title, post.content)

        analysis["title_keywords"] = analysis["title_keywords"][:ANALYSIS_KEYWORD_LIMIT]
        analysis["content_keywords"] = analysis["content_keywords"][:ANALYSIS_KEYWORD_LIMIT]
        return analysis

    async def execute_rules_for_post(self, post_id: str) -> list[dict]:
        """Evaluate every active rule against a post; returns matches, highest priority first."""
        with db_errors("execute category rules", post_id=post_id):
            async with self._db_session_factory() as session:
                post = await session.get(Post, post_id)
                if post is None:
                    raise NotFoundError("Post not found")
                analysis = analyze_content(post.title, post.content)
                rules = (await session.execute(
                    select(CategoryRule)
                    .where(CategoryRule.is_active == True)  # noqa: E712
                    .order_by(CategoryRule.priority.desc(), CategoryRule.created_at.asc())
                )).scalars().all()

                results = []
                for rule in rules:
                    started = time.perf_counter()
                    outcome = evaluate_conditions(rule.conditions or {}, analysis)
                    if not outcome["matched"]:
                        continue
                    session.add(CategoryRuleExecution(
                        rule_id=rule.id,
                        post_id=post_id,
                        execution_result=outcome,
                        confidence_score=outcome["confidence"],
                    ))
                    results.append({
                        "rule_id": rule.id,
                        "category_id": rule.category_id,
                        "post_id": post_id,
                        **outcome,
                        "execution_time_ms": round((time.perf_counter() - started) * 1000, 3),
                    })
                await session.commit()

        logger.info("category_rules_executed", post_id=post_id, rules=len(rules), matched=len(results))
        return results

    async def auto_categorize_post(self, post_id: str, min_confidence: float = 0.8) -> Optional[dict]:
        """Move a post into the category of its first match scoring above ``min_confidence``."""
        best = next(
            (r for r in await self.execute_rules_for_post(post_id) if r["confidence"] > min_confidence),
            None,
        )
        if best is None:
            return None

        with db_errors("assign category", post_id=post_id):
            async with self._db_session_factory() as session:
                post = await session.get(Post, post_id)
                if post is None:
                    raise NotFoundError("Post not found")
                post.category_id = best["category_id"]
                await session.commit()

        logger.info("post_auto_categorized", post_id=post_id, category_id=best["category_id"],
                    rule_id=best["rule_id"], confidence=best["confidence"])
        return best

    async def categorize_recent_posts(
        self,
        hours: int = 24,
        min_confidence: float = 0.8,
        uncategorized_slug: str = "uncategorized",
    ) -> dict:
        """Auto-categorize posts created within ``hours`` that have no real category yet."""
        since = utcnow() - timedelta(hours=hours)
        with db_errors("find uncategorized posts"):
            async with self._db_session_factory() as session:
                fallback = select(Category.id).where(Category.slug == uncategorized_slug)
                post_ids = (await session.execute(
                    select(Post.id).where(
                        Post.created_at >= since,
                        or_(Post.category_id.is_(None), Post.category_id.in_(fallback)),
                    )
                )).scalars().all()

        assigned = 0
        for post_id in post_ids:
            if await self.auto_categorize_post(post_id, min_confidence) is not None:
                assigned += 1

        logger.info("recent_posts_categorized", checked=len(post_ids), assigned=assigned)
        return {"checked": len(post_ids), "assigned": assigned}

    async def get_rule_statistics(self, rule_id: str) -> dict:
        """Summary over the rule's most recent executions."""
        with db_errors("get rule statistics", rule_id=rule_id):
            async with self._db_session_factory() as session:
                if await session.get(CategoryRule, rule_id) is None:
                    raise NotFoundError("Category rule not found")
                executions = (await session.execute(
                    select(CategoryRuleExecution)
                    .where(CategoryRuleExecution.rule_id == rule_id)
                    .order_by(CategoryRuleExecution.executed_at.desc())
                    .limit(STATISTICS_WINDOW)
                )).scalars().all()

        total = len(executions)
        successful = sum(1 for e in executions if e.confidence_score > SUCCESS_CONFIDENCE)
        return {
            "total_executions": total,
            "successful_executions": successful,
            "success_rate": round(successful / total * 100, 2) if total else 0,
            "average_confidence": round(sum(e.confidence_score for e in executions) / total, 4) if total else 0,
            "recent_executions": [execution_to_dict(e) for e in executions[:10]],
        }

    async def get_execution_logs(self, rule_id: Optional[str] = None, page: int = 1, limit: int = 10) -> dict:
        page = max(page, 1)
        stmt = select(CategoryRuleExecution)
        if rule_id:
            stmt = stmt.where(CategoryRuleExecution.rule_id == rule_id)

        with db_errors("get rule execution logs"):
            async with self._db_session_factory() as session:
                total = (await session.execute(
                    select(func.count()).select_from(stmt.subquery())
                )).scalar() or 0
                rows = (await session.execute(
                    stmt.order_by(CategoryRuleExecution.executed_at.desc())
                    .offset((page - 1) * limit)
                    .limit(limit)
                )).scalars().all()

        return {
            "executions": [execution_to_dict(e) for e in rows],
            "pagination": {
                "page": page,
                "limit": limit,
                "total": total,
                "total_pages": math.ceil(total / limit) if limit else 0,
            },
        }

    async def cleanup_old_logs(self, days_to_keep: int = 30) -> int:
        cutoff = utcnow() - timedelta(days=days_to_keep)
        with db_errors("clean up rule execution logs"):
            async with self._db_session_factory() as session:
                result = await session.execute(
                    delete(CategoryRuleExecution).where(CategoryRuleExecution.executed_at < cutoff)
                )
                await session.commit()

        logger.info("rule_execution_logs_cleaned", deleted=result.rowcount, days_to_keep=days_to_keep)
        return result.rowcount

    @staticmethod
    async def _check_category(session, category_id: str) -> None:
        if await session.get(Category, category_id) is None:
            raise ValidationError("Category not found")


class RuleScheduler:
    """Periodically auto-categorizes recent posts and prunes old execution logs."""

    def __init__(self, service: CategoryRulesService, interval_minutes: int,
                 min_confidence: float = 0.8, log_retention_days: int = 30):
        self._service = service
        self._interval = interval_minutes * 60
        self._min_confidence = min_confidence
        self._log_retention_days = log_retention_days
        self._task: Optional[asyncio.Task] = None
        self.running = False

    def start(self) -> None:
        self.running = True
        self._task = asyncio.create_task(self._poll_loop())
        logger.info("rule_scheduler_started", interval_seconds=self._interval)

    async def stop(self) -> None:
        self.running = False
        if self._task and not self._task.done():
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
        logger.info("rule_scheduler_stopped")

    async def run_once(self) -> dict:
        summary = await self._service.categorize_recent_posts(min_confidence=self._min_confidence)
        summary["logs_deleted"] = await self._service.cleanup_old_logs(self._log_retention_days)
        return summary

    async def _poll_loop(self) -> None:
        while self.running:
            try:
                await asyncio.sleep(self._interval)
                if self.running:
                    await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("rule_scheduler_error", error=str(e))


def rule_to_dict(rule: CategoryRule) -> dict:
    return {
        "id": rule.id,
        "name": rule.name,
        "category_id": rule.category_id,
        "conditions": rule.conditions,
        "priority": rule.priority,
        "is_active": rule.is_active,
        "created_by": rule.created_by,
        "created_at": iso(rule.created_at),
        "updated_at": iso(rule.updated_at),
    }


def execution_to_dict(execution: CategoryRuleExecution) -> dict:
    return {
        "id": execution.id,
        "rule_id": execution.rule_id,
        "post_id": execution.post_id,
        "execution_result": execution.execution_result,
        "confidence_score": execution.confidence_score,
        "executed_at": iso(execution.executed_at),
    }
