from beanwire._internal.enhancer import ConfigurationClassEnhancer, EnhancedConfiguration
from beanwire.aware import ContainerAware
from beanwire.container import BeanDefinition, Container
from beanwire.exceptions import (
    BeanWireBeanCreationError,
    BeanWireBeanNotFoundError,
    BeanWireCircularDependencyError,
    BeanWireConfigurationConflictError,
    BeanWireError,
    BeanWireInvalidRegistrationError,
    BeanWireInvariantViolationError,
    BeanWireMissingContainerError,
    BeanWireNoUniqueBeanError,
)
from beanwire.factory_bean import FACTORY_BEAN_PREFIX, FactoryBean, ScopedProxyFactoryBean
from beanwire.markers import bean, configuration
from beanwire.registry import SingletonRegistry
from beanwire.scope import PROTOTYPE, SINGLETON, THREAD, Scope, ScopedProxyMode, ThreadScope

__all__ = [
    "FACTORY_BEAN_PREFIX",
    "PROTOTYPE",
    "SINGLETON",
    "THREAD",
    "BeanDefinition",
    "BeanWireBeanCreationError",
    "BeanWireBeanNotFoundError",
    "BeanWireCircularDependencyError",
    "BeanWireConfigurationConflictError",
    "BeanWireError",
    "BeanWireInvalidRegistrationError",
    "BeanWireInvariantViolationError",
    "BeanWireMissingContainerError",
    "BeanWireNoUniqueBeanError",
    "ConfigurationClassEnhancer",
    "Container",
    "ContainerAware",
    "EnhancedConfiguration",
    "FactoryBean",
    "Scope",
    "ScopedProxyFactoryBean",
    "ScopedProxyMode",
    "SingletonRegistry",
    "ThreadScope",
    "bean",
    "configuration",
]
