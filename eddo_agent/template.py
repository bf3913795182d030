from typing import Any, Callable, MutableMapping, Sequence

from jinja2 import Environment, PackageLoader, PrefixLoader, BaseLoader, ChoiceLoader, Template, StrictUndefined


class TemplateLoader(BaseLoader):
    """Loads templates from ``templates/<lang>`` of a package, keyed by ``<lang>/<name>``."""

    def __init__(self, package_name: str, languages: Sequence[str] = ('en',), default_lang: str = 'en'):
        self.default_lang = default_lang
        self.loader_map: dict[str, list[BaseLoader]] = {
            lang: [PackageLoader(package_name, package_path=f"templates/{lang}")]
            for lang in languages
        }
        self._loader = self._build_jinja_loader(self.loader_map)

    @staticmethod
    def _build_jinja_loader(loader_map: dict[str, list[BaseLoader]]):
        return PrefixLoader({key: ChoiceLoader(loaders) for key, loaders in loader_map.items()})

    def get_source(self, environment: Environment, template: str) -> tuple[str, str | None, Callable[[], bool] | None]:
        return self._loader.get_source(environment, template)

    def list_templates(self) -> list[str]:
        return self._loader.list_templates()

    def add_loaders(self, lang: str, *loaders: BaseLoader):
        """Put extra loaders in front of the packaged templates for one language."""
        self.loader_map[lang] = list(loaders) + self.loader_map.get(lang, [])
        self._loader = self._build_jinja_loader(self.loader_map)


class TemplateEnvironment(Environment):
    def __init__(
            self,
            package_name: str = "eddo_agent",
            languages: Sequence[str] = ('en',),
            default_lang: str | None = None,
            **kwargs: Any,
    ):
        self.template_loader = TemplateLoader(package_name, languages, default_lang or 'en')
        kwargs.setdefault('trim_blocks', True)
        kwargs.setdefault('lstrip_blocks', True)
        kwargs.setdefault('undefined', StrictUndefined)
        super().__init__(loader=self.template_loader, **kwargs)

    def load_template(self, name: str, lang: str | None = None, globals: MutableMapping[str, Any] | None = None) -> Template:
        candidate_langs: list[str] = []
        for candidate in (lang, self.template_loader.default_lang, 'en'):
            if candidate and candidate not in candidate_langs:
                candidate_langs.append(candidate)
        return self.select_template(names=[f"{l}/{name}" for l in candidate_langs], globals=globals)
