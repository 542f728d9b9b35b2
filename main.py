from dotenv import load_dotenv

from gaikit.core.config import get_plugin_configs
from gaikit.core.logger import logger
from gaikit.orchestration import init
from samples.flows import define_sample_flows
from samples.plugins import init_plugins

load_dotenv()


def main():
    # In dev (GENKIT_ENV=dev) the reflection API listens on 3100:
    #   curl -d '{"key":"/flow/parent", "input":null}' http://localhost:3100/api/runAction
    # Flows are served on PORT (3400):
    #   curl -d '{"data": "foo"}' http://localhost:3400/basic
    init_plugins(get_plugin_configs())
    define_sample_flows()
    logger.info("Defined sample flows")
    init()


if __name__ == "__main__":
    main()
