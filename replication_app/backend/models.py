"""
ORM models for the replication tracker.

Articles own studies; studies own their artifacts (findings,
materials, registrations and links) and take part in a
self-referential replication graph through the :class:`Replication`
join table.  Every model carries ``created_at``/``updated_at``
timestamps, an :class:`~replication_app.backend.validation.Errors`
container filled by :meth:`validate`, and an ``as_json`` method used
by the API.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    JSON,
    String,
    Table,
    Text,
)
from sqlalchemy.orm import declarative_base, object_session, relationship

from .exceptions import InvalidEffectSizeError
from .validation import Errors, is_number, validate_numericality, validate_presence

logger = logging.getLogger(__name__)

# SQLAlchemy base class used to declare models
Base = declarative_base()

# Statistical tests an effect size may be reported for.
EFFECT_SIZE_TYPES = frozenset({
    'd',          # Cohen's d
    'g',          # Hedges' g
    'r',          # Pearson correlation
    'r2',
    'f',          # Cohen's f
    'f2',
    'eta2',
    'partial_eta2',
    'omega2',
    'phi',
    'cramers_v',
    'or',         # odds ratio
    'rr',         # risk ratio
})


def utcnow() -> datetime:
    """Current UTC time as a naive datetime, the form stored in the database."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


class RecordMixin:
    """Timestamps, error tracking and validation shared by every model."""

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    @property
    def errors(self) -> Errors:
        # Instances loaded from the database bypass __init__, so the
        # container is created on first access.
        errors = self.__dict__.get('_errors')
        if errors is None:
            errors = Errors()
            self.__dict__['_errors'] = errors
        return errors

    def validate(self) -> bool:
        """Run this model's rules, replacing any previous errors."""
        self.errors.clear()
        self.run_validations()
        if self.errors:
            logger.debug(f"{type(self).__name__} failed validation: {self.errors.full_messages()}")
        return not self.errors

    def run_validations(self) -> None:
        """Hook for subclasses; append to ``self.errors``."""


article_authors = Table(
    'article_authors',
    Base.metadata,
    Column('article_id', Integer, ForeignKey('articles.id', ondelete='CASCADE'), primary_key=True),
    Column('author_id', Integer, ForeignKey('authors.id', ondelete='CASCADE'), primary_key=True),
)


class Article(RecordMixin, Base):
    """A published article; the parent of one or more studies."""

    __tablename__ = 'articles'

    id = Column(Integer, primary_key=True)
    title = Column(Text, nullable=False)
    doi = Column(String, nullable=True)
    publication_date = Column(DateTime, nullable=True)
    abstract = Column(Text, nullable=True)

    studies = relationship(
        'Study',
        back_populates='article',
        cascade='all',
        order_by='Study.id',
    )
    authors = relationship('Author', secondary=article_authors, back_populates='articles')

    def run_validations(self) -> None:
        validate_presence(self, 'title')

    def as_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'title': self.title,
            'doi': self.doi,
            'publication_date': _iso(self.publication_date),
            'abstract': self.abstract,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Article id={self.id} title={self.title!r}>"


class Author(RecordMixin, Base):
    __tablename__ = 'authors'

    id = Column(Integer, primary_key=True)
    first_name = Column(String, nullable=True)
    middle_name = Column(String, nullable=True)
    last_name = Column(String, nullable=False)
    orcid = Column(String, nullable=True)

    articles = relationship('Article', secondary=article_authors, back_populates='authors')

    def run_validations(self) -> None:
        validate_presence(self, 'last_name')

    def as_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'first_name': self.first_name,
            'middle_name': self.middle_name,
            'last_name': self.last_name,
            'orcid': self.orcid,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Study(RecordMixin, Base):
    """A single study reported in an article.

    ``n`` is the sample size and ``power`` the statistical power.  The
    ``effect_size`` mapping holds at most one ``{test_type: value}``
    entry; :meth:`set_effect_size` replaces it wholesale.
    """

    __tablename__ = 'studies'

    id = Column(Integer, primary_key=True)
    article_id = Column(Integer, ForeignKey('articles.id', ondelete='CASCADE'), nullable=False)
    n = Column(Integer, nullable=True)
    power = Column(Float, nullable=True)
    dependent_variables = Column(JSON, nullable=False, default=list)
    independent_variables = Column(JSON, nullable=False, default=list)
    effect_size = Column(JSON, nullable=False, default=dict)

    article = relationship('Article', back_populates='studies')
    findings = relationship('Finding', back_populates='study', cascade='all, delete-orphan', order_by='Finding.id')
    materials = relationship('Material', back_populates='study', cascade='all, delete-orphan', order_by='Material.id')
    registrations = relationship(
        'Registration', back_populates='study', cascade='all, delete-orphan', order_by='Registration.id'
    )
    links = relationship('Link', back_populates='study', cascade='all, delete-orphan', order_by='Link.id')

    # Edges where this study is the one being replicated
    replications = relationship(
        'Replication',
        foreign_keys='Replication.study_id',
        back_populates='study',
        cascade='all, delete-orphan',
        order_by='Replication.id',
    )
    # Edges where this study replicates another
    replication_of = relationship(
        'Replication',
        foreign_keys='Replication.replicating_study_id',
        back_populates='replicating_study',
        cascade='all, delete-orphan',
        order_by='Replication.id',
    )

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault('dependent_variables', [])
        kwargs.setdefault('independent_variables', [])
        kwargs.setdefault('effect_size', {})
        super().__init__(**kwargs)

    def run_validations(self) -> None:
        if self.article_id is None and self.article is None:
            self.errors.add('article_id', "can't be blank")
        validate_numericality(self, 'n', only_integer=True, greater_than=0)
        validate_numericality(self, 'power', greater_than=0, less_than=1)
        if any(not is_number(value) for value in (self.effect_size or {}).values()):
            self.errors.add('effect_size', 'is not a number')

    # JSON columns do not track in-place mutation, so the mutators below
    # always assign a fresh container.

    def add_dependent_variables(self, value: str) -> 'Study':
        self.dependent_variables = list(self.dependent_variables or []) + [value]
        return self

    def add_independent_variables(self, value: str) -> 'Study':
        self.independent_variables = list(self.independent_variables or []) + [value]
        return self

    def set_effect_size(self, test_type: Any, value: float) -> 'Study':
        """Replace the study's effect size with ``{test_type: value}``.

        Raises:
            InvalidEffectSizeError: if ``test_type`` is not a known test.
        """
        if not isinstance(test_type, str) or test_type not in EFFECT_SIZE_TYPES:
            raise InvalidEffectSizeError(test_type)
        self.effect_size = {test_type: value}
        return self

    def add_replication(self, replicating_study: 'Study', closeness: int = 0) -> 'Replication':
        """Record that ``replicating_study`` replicates this study.

        When this study is attached to a session the edge is flushed
        straight away; otherwise it is written with the study.
        """
        replication = Replication(
            study=self,
            replicating_study=replicating_study,
            closeness=closeness if closeness is not None else 0,
        )
        session = object_session(self)
        if session is not None:
            session.add(replication)
            session.flush()
        return replication

    def as_json(self, **options: bool) -> Dict[str, Any]:
        """Serialise the study, attaching related collections on request.

        Recognised flags: ``findings``, ``materials``, ``registrations``,
        ``links``, ``replications`` and ``replication_of``.  A key is only
        present in the result when its flag is true.
        """
        data: Dict[str, Any] = {
            'id': self.id,
            'article_id': self.article_id,
            'n': self.n,
            'power': self.power,
            'dependent_variables': list(self.dependent_variables or []),
            'independent_variables': list(self.independent_variables or []),
            'effect_size': dict(self.effect_size or {}),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }
        for name in ('findings', 'materials', 'registrations', 'links'):
            if options.get(name):
                data[name] = [item.as_json() for item in getattr(self, name)]
        if options.get('replications'):
            data['replications'] = [
                {
                    'id': edge.id,
                    'closeness': edge.closeness,
                    'replicating_study': edge.replicating_study.as_json(),
                }
                for edge in self.replications
            ]
        if options.get('replication_of'):
            data['replication_of'] = [
                {
                    'id': edge.id,
                    'closeness': edge.closeness,
                    'study': edge.study.as_json(),
                }
                for edge in self.replication_of
            ]
        return data

    def __repr__(self) -> str:
        return f"<Study id={self.id} article_id={self.article_id}>"


class Replication(RecordMixin, Base):
    """Directed edge: ``replicating_study`` replicates ``study``."""

    __tablename__ = 'replications'

    id = Column(Integer, primary_key=True)
    study_id = Column(Integer, ForeignKey('studies.id', ondelete='CASCADE'), nullable=False)
    replicating_study_id = Column(Integer, ForeignKey('studies.id', ondelete='CASCADE'), nullable=False)
    closeness = Column(Integer, nullable=False, default=0)

    study = relationship('Study', foreign_keys=[study_id], back_populates='replications')
    replicating_study = relationship('Study', foreign_keys=[replicating_study_id], back_populates='replication_of')

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault('closeness', 0)
        super().__init__(**kwargs)

    def run_validations(self) -> None:
        if self.study_id is None and self.study is None:
            self.errors.add('study_id', "can't be blank")
        if self.replicating_study_id is None and self.replicating_study is None:
            self.errors.add('replicating_study_id', "can't be blank")
        validate_numericality(self, 'closeness', only_integer=True)

    def as_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'study_id': self.study_id,
            'replicating_study_id': self.replicating_study_id,
            'closeness': self.closeness,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }

    def __repr__(self) -> str:
        return f"<Replication study_id={self.study_id} replicating_study_id={self.replicating_study_id}>"


class ArtifactMixin(RecordMixin):
    """Columns shared by the named, URL-addressed records a study owns."""

    id = Column(Integer, primary_key=True)
    name = Column(String, nullable=True)
    url = Column(Text, nullable=True)

    def run_validations(self) -> None:
        if self.study_id is None and self.study is None:
            self.errors.add('study_id', "can't be blank")

    def as_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'study_id': self.study_id,
            'name': self.name,
            'url': self.url,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Finding(ArtifactMixin, Base):
    __tablename__ = 'findings'

    study_id = Column(Integer, ForeignKey('studies.id', ondelete='CASCADE'), nullable=False)
    study = relationship('Study', back_populates='findings')


class Material(ArtifactMixin, Base):
    __tablename__ = 'materials'

    study_id = Column(Integer, ForeignKey('studies.id', ondelete='CASCADE'), nullable=False)
    study = relationship('Study', back_populates='materials')


class Registration(ArtifactMixin, Base):
    __tablename__ = 'registrations'

    study_id = Column(Integer, ForeignKey('studies.id', ondelete='CASCADE'), nullable=False)
    study = relationship('Study', back_populates='registrations')


class Link(ArtifactMixin, Base):
    """A typed link; ``type`` says what the URL points at (finding, material, ...)."""

    __tablename__ = 'links'

    study_id = Column(Integer, ForeignKey('studies.id', ondelete='CASCADE'), nullable=False)
    type = Column(String, nullable=True)
    study = relationship('Study', back_populates='links')

    def as_json(self) -> Dict[str, Any]:
        data = super().as_json()
        data['type'] = self.type
        return data


class User(RecordMixin, Base):
    __tablename__ = 'users'

    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False, unique=True)
    name = Column(String, nullable=True)
    admin = Column(Boolean, nullable=False, default=False)
    api_token = Column(String, nullable=True, unique=True, index=True)

    invites = relationship('Invite', back_populates='inviter')

    def run_validations(self) -> None:
        validate_presence(self, 'email')

    def as_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'admin': bool(self.admin),
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


class Invite(RecordMixin, Base):
    __tablename__ = 'invites'

    id = Column(Integer, primary_key=True)
    email = Column(String, nullable=False)
    code = Column(String, nullable=False, unique=True)
    inviter_id = Column(Integer, ForeignKey('users.id', ondelete='SET NULL'), nullable=True)

    inviter = relationship('User', back_populates='invites')

    def __init__(self, **kwargs: Any) -> None:
        kwargs.setdefault('code', secrets.token_urlsafe(16))
        super().__init__(**kwargs)

    def run_validations(self) -> None:
        validate_presence(self, 'email')

    def as_json(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'email': self.email,
            'code': self.code,
            'inviter_id': self.inviter_id,
            'created_at': _iso(self.created_at),
            'updated_at': _iso(self.updated_at),
        }


# Models reported on by the admin statistics endpoint, keyed by the
# name used in the report.
REPORTED_MODELS: Dict[str, Any] = {
    'articles': Article,
    'authors': Author,
    'invites': Invite,
    'links': Link,
    'replications': Replication,
    'studies': Study,
    'users': User,
}

__all__: List[str] = [
    'Base',
    'EFFECT_SIZE_TYPES',
    'REPORTED_MODELS',
    'Article',
    'Author',
    'Finding',
    'Invite',
    'Link',
    'Material',
    'Registration',
    'Replication',
    'Study',
    'User',
    'utcnow',
]
